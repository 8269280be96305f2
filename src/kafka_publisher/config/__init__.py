"""Credential, parameter and settings models plus YAML loading."""

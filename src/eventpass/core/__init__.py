"""Configuration, error types and cryptographic helpers."""

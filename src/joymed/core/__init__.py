"""Core domain: auth types, services and exceptions."""

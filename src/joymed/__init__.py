"""JOY MED portals: identity and access control."""

__version__ = "1.0.0"

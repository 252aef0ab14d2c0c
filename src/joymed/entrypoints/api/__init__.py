"""HTTP API for the admin and doctor portals."""

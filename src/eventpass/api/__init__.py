"""HTTP API for EventPass."""

"""HTTP API support modules."""

"""HTTP API for stackhub."""

"""HTTP API for the Auto-Create pipeline."""

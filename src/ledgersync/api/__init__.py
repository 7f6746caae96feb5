"""Wire-level schemas for the remote resource service."""

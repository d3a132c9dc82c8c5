"""releasewatch - update advisory and usage telemetry service."""

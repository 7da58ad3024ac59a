"""Application layer: settings, dependency wiring and the HTTP API."""

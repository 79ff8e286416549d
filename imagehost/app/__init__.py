"""Application wiring: settings, logging, dependencies and the FastAPI app factory."""

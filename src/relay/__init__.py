"""Relay HTTP surface: admission gate, request schemas, FastAPI app."""

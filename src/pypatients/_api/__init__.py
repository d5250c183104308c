"""Endpoint modules for the patient API (internal)."""

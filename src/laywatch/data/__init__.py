"""Persistence and ingest collaborators."""

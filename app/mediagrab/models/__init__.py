"""Typed payloads shared by the API layer and the download core."""

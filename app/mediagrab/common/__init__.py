"""Shared Starlette glue."""

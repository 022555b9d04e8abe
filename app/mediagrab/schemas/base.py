"""Base Marshmallow schema for Mediagrab request payloads."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema  # type: ignore[import-not-found]


class MediagrabSchema(Schema):
    """Default schema with common configuration (ordered output, ignore unknown)."""

    class Meta:
        ordered = True
        unknown = EXCLUDE


__all__ = ["MediagrabSchema"]

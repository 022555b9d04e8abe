from .base import MediagrabSchema

__all__ = ["MediagrabSchema"]

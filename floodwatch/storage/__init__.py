"""
storage — area record stores and the payload codec.
"""

from .area_store import ALLOWED_UPDATE_FIELDS, AreaStore, InMemoryAreaStore

__all__ = ["ALLOWED_UPDATE_FIELDS", "AreaStore", "InMemoryAreaStore"]

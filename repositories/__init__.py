"""
Repository layer: one data-access class per model, all built on BaseRepository
"""

from .base_repository import BaseRepository

__all__ = ['BaseRepository']

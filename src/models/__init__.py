"""Database models."""

from .file_metadata import FileMetadata
from .chunk import Chunk

__all__ = ["FileMetadata", "Chunk"]

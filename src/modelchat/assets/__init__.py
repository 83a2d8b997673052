"""Grounding document management."""

from .manager import AssetManager, UploadStream
from .models import Asset, AssetListing, AssetStats, format_size

__all__ = [
    "Asset",
    "AssetListing",
    "AssetManager",
    "AssetStats",
    "UploadStream",
    "format_size",
]

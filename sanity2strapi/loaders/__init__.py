"""Loaders for the target store and asset providers."""

from .base import AssetUploader, BaseLoader
from .strapi_loader import StrapiLoader
from .cloudinary_loader import CloudinaryUploader

__all__ = [
    "AssetUploader",
    "BaseLoader",
    "StrapiLoader",
    "CloudinaryUploader",
]

"""
Upload module - Sends artifacts to the blob container.

Components:
- BlobUploader: azcopy with marker-based success detection and bounded retry
"""

from .uploader import BlobUploader

__all__ = ["BlobUploader"]

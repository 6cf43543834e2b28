"""Backend clients for the termination workflow."""

from __future__ import annotations

from .base import BaseApiClient
from .lease_api import LeaseApiClient
from .protocol import InvoiceCreator, LeaseApi, MediaUploader

__all__ = [
    "BaseApiClient",
    "LeaseApiClient",
    "LeaseApi",
    "MediaUploader",
    "InvoiceCreator",
]

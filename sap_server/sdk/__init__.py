"""
Python SDK for the SAP server.

Provides programmatic prompt tracking and access to the global impact stats.
"""

from .autotrack import DEFAULT_RULES, DocumentEvent, TrackingRule
from .client import SAPClient, SAPClientError
from .config import SDKConfig

__all__ = ["SAPClient", "SAPClientError", "SDKConfig", "DocumentEvent", "TrackingRule", "DEFAULT_RULES"]

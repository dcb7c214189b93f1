"""
Custom exception classes for the Shopify → Bitrix24 sync.
Order mapping never raises; these cover configuration loading.
"""


class SyncException(Exception):
    """Base exception for all sync operations"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationException(SyncException):
    """Raised when the Bitrix24 mapping configuration cannot be loaded"""

    def __init__(self, message: str, source: str = None, details: dict = None):
        super().__init__(message, details)
        self.source = source

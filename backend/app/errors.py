"""Custom exceptions for the storefront backend"""
from typing import Optional


class StorefrontError(Exception):
    """Base exception for storefront errors"""
    pass


class ConfigurationError(StorefrontError):
    """Invalid environment configuration"""
    pass


class MalformedDonationError(StorefrontError):
    """A donation row that cannot be aggregated (missing id, bad amount, ...)"""
    pass


class QuoteError(StorefrontError):
    """Raised by the quote client when a quote could not be obtained"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UpstreamQuoteError(StorefrontError):
    """The live Pressmaster API failed, timed out or answered with an error"""
    pass


class FeedError(StorefrontError):
    """Realtime donation feed transport failure"""
    pass

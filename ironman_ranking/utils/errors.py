"""
Custom exception classes and error handling utilities.
"""

from typing import Optional, Dict, Any
import traceback


class IronmanRankingError(Exception):
    """Base exception for all ironman ranking errors."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class CrawlerError(IronmanRankingError):
    """Exception raised during crawling operations."""
    pass


class FetchError(CrawlerError):
    """Exception raised when a page cannot be retrieved."""
    pass


class ParseError(CrawlerError):
    """Exception raised when an expected element or value is missing or malformed."""
    pass


class EmptyReferenceError(CrawlerError):
    """Exception raised when an article reference has no URL."""
    pass


class StreamClosedError(IronmanRankingError):
    """Exception raised when writing to or closing an already closed stream."""
    pass


class ConfigurationError(IronmanRankingError):
    """Exception raised for configuration-related issues."""
    pass


class ValidationError(IronmanRankingError):
    """Exception raised for data validation failures."""
    pass


def handle_error(
    error: Exception,
    logger,
    context: Optional[Dict[str, Any]] = None,
    reraise: bool = True
) -> None:
    """
    Handle and log errors with context information.
    
    Args:
        error: The exception that occurred
        logger: Logger instance to use for logging
        context: Additional context information
        reraise: Whether to reraise the exception after logging
    """
    error_context = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        **(context or {})
    }
    
    if isinstance(error, IronmanRankingError):
        error_context.update(error.details)
    
    summary = ", ".join(f"{key}={value}" for key, value in error_context.items())
    logger.error(f"Error occurred: {summary}")
    logger.debug(traceback.format_exc())
    
    if reraise:
        raise error

import asyncio
from enum import Enum
from typing import Optional

import aiohttp


class ErrorType(Enum):
    """Classification of fetch failures"""
    NETWORK_TIMEOUT = "network_timeout"
    CONNECTION_ERROR = "connection_error"
    HTTP_CLIENT_ERROR = "http_client_error"  # 4xx
    HTTP_SERVER_ERROR = "http_server_error"  # 5xx
    RATE_LIMITED = "rate_limited"  # 429
    DECODE_ERROR = "decode_error"  # body not valid in its charset
    REQUEST_REJECTED = "request_rejected"  # refused before any I/O
    UNKNOWN_ERROR = "unknown_error"


def classify_error(error: Optional[Exception], status_code: Optional[int] = None) -> ErrorType:
    """Classify an error into appropriate error type"""
    if isinstance(error, asyncio.TimeoutError):
        return ErrorType.NETWORK_TIMEOUT
    elif isinstance(error, (UnicodeDecodeError, LookupError)):
        return ErrorType.DECODE_ERROR
    elif isinstance(error, aiohttp.ClientConnectorError):
        return ErrorType.CONNECTION_ERROR
    elif status_code:
        if status_code == 429:
            return ErrorType.RATE_LIMITED
        elif 400 <= status_code < 500:
            return ErrorType.HTTP_CLIENT_ERROR
        elif 500 <= status_code < 600:
            return ErrorType.HTTP_SERVER_ERROR

    return ErrorType.UNKNOWN_ERROR


class ScraperError(Exception):
    """Base class for scraper errors"""


class StartupError(ScraperError):
    """Invalid invocation, raised before any network activity"""


class FetchError(ScraperError):
    """Transport, HTTP or navigation failure for a single visit"""

    def __init__(self, message: str, url: Optional[str] = None,
                 status_code: Optional[int] = None, cause: Optional[Exception] = None,
                 error_type: Optional[ErrorType] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.cause = cause
        self.error_type = error_type or classify_error(cause, status_code)

    def __str__(self):
        message = super().__str__()
        if self.url:
            return f"{message} ({self.error_type.value}, url={self.url})"
        return f"{message} ({self.error_type.value})"


class WriteError(ScraperError):
    """A result row could not be written to the output file"""

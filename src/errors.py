"""
Maker Leads - error taxonomy.

Navigation and extraction failures are absorbed at the public resolver
boundaries and turned into empty results. Configuration errors are fatal
and reach the CLI.
"""
from __future__ import annotations

from enum import Enum


class LeadsError(Exception):
    """Base class for all project errors."""


class NavigationFailure(str, Enum):
    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    DNS_ERROR = "dns_error"
    ABORTED = "aborted"
    SSL_ERROR = "ssl_error"
    NAVIGATION_ERROR = "navigation_error"
    UNKNOWN = "unknown"


class NavigationError(LeadsError):
    """Raised when a page could not be loaded within the retry budget."""

    def __init__(self, url: str, kind: NavigationFailure = NavigationFailure.UNKNOWN, message: str = "") -> None:
        self.url = url
        self.kind = kind
        self.message = message
        super().__init__(f"{kind.value}: {url}" + (f" ({message})" if message else ""))


class ExtractionError(LeadsError):
    """A single heuristic step failed; callers treat the step as empty."""

    def __init__(self, step: str, message: str = "") -> None:
        self.step = step
        super().__init__(f"{step}: {message}" if message else step)


class ConfigurationError(LeadsError):
    """Invalid configuration or missing collaborator credentials."""


class DeliveryError(LeadsError):
    """Non-retriable failure while pushing leads to a campaign API."""


_KIND_MARKERS = [
    (NavigationFailure.TIMEOUT, ("timeout", "timed out")),
    (NavigationFailure.CONNECTION_REFUSED, ("err_connection_refused", "econnrefused", "connection refused")),
    (NavigationFailure.DNS_ERROR, ("err_name_not_resolved", "enotfound", "getaddrinfo", "dns")),
    (NavigationFailure.ABORTED, ("err_aborted", "net::err_aborted", "aborted")),
    (NavigationFailure.SSL_ERROR, ("err_ssl", "err_cert", "ssl", "certificate")),
    (NavigationFailure.NAVIGATION_ERROR, ("navigation", "net::err_")),
]


def classify_navigation_error(exc: BaseException) -> NavigationFailure:
    """Map a browser exception to a coarse failure class (diagnostics only)."""
    if isinstance(exc, NavigationError):
        return exc.kind
    text = f"{type(exc).__name__} {exc}".lower()
    for kind, markers in _KIND_MARKERS:
        if any(m in text for m in markers):
            return kind
    return NavigationFailure.UNKNOWN

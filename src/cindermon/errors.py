"""
Exceptions raised by the collector.

Nothing in the collection path retries. Every error aborts the whole
collection and is raised to whoever called collect(), with the
underlying cause chained on __cause__.
"""

from __future__ import annotations


class CollectorError(Exception):
    """Base class for everything cindermon raises on purpose."""


class ConfigError(CollectorError):
    """Configuration is missing a required key or has a bad value."""


class MalformedNamespaceError(CollectorError, ValueError):
    """A requested namespace is too short or names an unknown category."""


class InvalidPathError(CollectorError, LookupError):
    """A namespace path does not resolve to a scalar in the metric schema."""


class AuthenticationError(CollectorError):
    """Keystone refused the credentials or could not be reached."""


class DirectoryError(CollectorError):
    """Listing the tenants visible to the configured user failed."""


class FetchError(CollectorError):
    """A Cinder call for one category of data failed."""

    def __init__(self, category: str, message: str):
        super().__init__(f"{category}: {message}")
        self.category = category

"""Typed failures raised inside the listing engine."""

from __future__ import annotations

from enum import Enum


class FailureReason(str, Enum):
    """Why a load request failed, as reported on ``RequestFailed`` events."""

    CONFIGURATION = "configuration"
    NETWORK = "network"
    PARSE = "parse"


class ListingServiceError(Exception):
    """Base class for all listing service errors."""


class ConfigurationError(ListingServiceError):
    """A site descriptor is wrong. Reconnecting will not fix it."""


class URLConfigurationError(ConfigurationError):
    """The page URL template could not be turned into a valid URL."""


class SelectorConfigurationError(ConfigurationError):
    """A CSS selector in the site descriptor has invalid syntax."""


class SiteConfigurationError(ConfigurationError):
    """The site catalog file is malformed."""


class NetworkError(ListingServiceError):
    """Transport-level failure or a non-success response."""


class TransportError(NetworkError):
    """The transport could not complete the request."""

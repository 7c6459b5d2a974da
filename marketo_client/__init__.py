"""
Marketo API Client Package

REST client for the Marketo lead, list, campaign, email asset and bulk
import APIs, authenticated with the OAuth2 client-credentials grant.

Main exports:
- MarketoClient: Client with one method per API endpoint
- MarketoConfig: Configuration dataclass
- TokenProvider, AccessToken: Access token acquisition and caching
- MarketoError and subclasses: Error taxonomy
"""

from .auth import AccessToken, TokenProvider
from .base_client import (
    ApiError,
    AuthError,
    ConfigError,
    DecodeError,
    MarketoError,
    MarketoTransport,
    TransportError,
    ValidationError,
)
from .config import MarketoConfig
from .marketo import MarketoClient
from .results import ApiErrorDetail, Response

__all__ = [
    'MarketoClient',
    'MarketoConfig',
    'MarketoTransport',
    'TokenProvider',
    'AccessToken',
    'Response',
    'ApiErrorDetail',
    'MarketoError',
    'ApiError',
    'ConfigError',
    'ValidationError',
    'AuthError',
    'TransportError',
    'DecodeError',
]

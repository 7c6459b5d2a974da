"""
Configuration dataclass for the Marketo API client.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .base_client import ConfigError


MUNCHKIN_URL_TEMPLATE = "https://{munchkin_id}.mktorest.com"


@dataclass
class MarketoConfig:
    """Configuration for Marketo REST API client.

    Attributes:
        client_id: LaunchPoint service client ID
        client_secret: LaunchPoint service client secret
        base_url: Instance URL (e.g. https://123-ABC-456.mktorest.com)
        munchkin_id: Munchkin account ID, used to derive base_url when it is not set
        api_version: REST API version used in /rest/v{version}/ paths
        bulk: Route lead import and batch status calls through /bulk/v1/
        default_timeout: Default timeout for requests in seconds
        token_expiry_buffer: Seconds subtracted from expires_in before a token is refreshed
        pagination_delay: Delay between pagination requests in seconds
    """
    client_id: str
    client_secret: str
    base_url: Optional[str] = None
    munchkin_id: Optional[str] = None
    api_version: int = 1
    bulk: bool = False
    default_timeout: int = 30
    token_expiry_buffer: int = 30
    pagination_delay: float = 0.1

    def __post_init__(self):
        if not self.base_url and not self.munchkin_id:
            raise ConfigError("Must provide either a base URL or a Munchkin ID.")

        if not self.client_id or not self.client_secret:
            raise ConfigError("Both client_id and client_secret are required.")

        if self.base_url:
            self.base_url = self.base_url.rstrip('/')
        else:
            self.base_url = MUNCHKIN_URL_TEMPLATE.format(munchkin_id=self.munchkin_id)

    @property
    def token_url(self) -> str:
        """Identity endpoint for the client-credentials grant."""
        return f"{self.base_url}/identity/oauth/token"

    @classmethod
    def from_env(cls) -> "MarketoConfig":
        """Create config from environment variables (and a .env file if present).

        Reads MARKETO_CLIENT_ID, MARKETO_CLIENT_SECRET, MARKETO_BASE_URL,
        MARKETO_MUNCHKIN_ID, MARKETO_API_VERSION, MARKETO_BULK and MARKETO_TIMEOUT.

        Raises:
            ConfigError: If required values are missing or malformed
        """
        load_dotenv()

        try:
            api_version = int(os.getenv("MARKETO_API_VERSION", "1"))
            timeout = int(os.getenv("MARKETO_TIMEOUT", "30"))
        except ValueError as e:
            raise ConfigError(f"Invalid numeric Marketo setting: {e}") from e

        return cls(
            client_id=os.getenv("MARKETO_CLIENT_ID", ""),
            client_secret=os.getenv("MARKETO_CLIENT_SECRET", ""),
            base_url=os.getenv("MARKETO_BASE_URL") or None,
            munchkin_id=os.getenv("MARKETO_MUNCHKIN_ID") or None,
            api_version=api_version,
            bulk=os.getenv("MARKETO_BULK", "false").lower() in ("1", "true", "yes"),
            default_timeout=timeout,
        )

"""
Authenticated HTTP transport shared by all Marketo endpoint calls.

Provides:
- Bearer token injection on every request
- Query string and JSON body encoding
- Status code and JSON envelope handling
- Error classification
- Logging
"""

import logging
from typing import Dict, List, Any, Optional

import requests

logger = logging.getLogger(__name__)

# Marketo error codes signalling the bearer token must be re-acquired
TOKEN_ERROR_CODES = {'601', '602'}


class MarketoError(Exception):
    """Base exception for Marketo client errors"""
    pass


class ConfigError(MarketoError):
    """Raised when the client is constructed with invalid settings"""
    pass


class ValidationError(MarketoError):
    """Raised when call arguments are rejected before any request is sent"""
    pass


class AuthError(MarketoError):
    """Raised when an access token cannot be obtained"""
    pass


class TransportError(MarketoError):
    """Raised on network failures, timeouts and non-2xx responses"""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class DecodeError(MarketoError):
    """Raised when a response body is not a JSON object"""
    pass


class ApiError(MarketoError):
    """Raised when Marketo reports success=false where a result is required"""
    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        self.errors = errors or []
        super().__init__(message)


class MarketoTransport:
    """Issues authenticated requests against a Marketo instance.

    Handles:
    - Session management
    - Authorization header from the token provider
    - Query encoding for GET/DELETE, JSON or multipart bodies for POST
    - Timeouts and error translation

    No request is retried. When the API reports an invalid or expired
    token (601/602) the token that request carried is dropped so the next call
    acquires a fresh one.
    """

    def __init__(self, base_url: str, token_provider, default_timeout: int = 30,
                 session: Optional[requests.Session] = None):
        """Initialize transport.

        Args:
            base_url: Instance URL, without trailing slash
            token_provider: Object exposing get_token() and invalidate(token)
            default_timeout: Default timeout for requests in seconds
            session: Optional pre-configured requests session
        """
        self.base_url = base_url
        self.token_provider = token_provider
        self.default_timeout = default_timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': 'Marketo-REST-Client/1.0',
            'Accept': 'application/json'
        })

    def request(self,
                method: str,
                endpoint: str,
                params: Optional[Dict[str, Any]] = None,
                files: Optional[Dict[str, Any]] = None,
                timeout: Optional[float] = None) -> requests.Response:
        """Send a single authenticated request.

        Args:
            method: HTTP method (GET, POST or DELETE)
            endpoint: Path below the base URL, starting with '/'
            params: Request parameters; sent as query string for GET/DELETE,
                    as JSON body for POST, as form fields when files is given
            files: Files for a multipart POST
            timeout: Per-call timeout override in seconds

        Returns:
            Response object (status not checked)

        Raises:
            AuthError: Token could not be acquired
            TransportError: Network failure or timeout
        """
        response, _ = self._send(method, endpoint, params, files, timeout)
        return response

    def _send(self, method: str, endpoint: str,
              params: Optional[Dict[str, Any]] = None,
              files: Optional[Dict[str, Any]] = None,
              timeout: Optional[float] = None):
        """Send a request and return it together with the token it carried."""
        method = method.upper()
        url = f"{self.base_url}{endpoint}"
        token = self.token_provider.get_token()

        kwargs: Dict[str, Any] = {
            'headers': {'Authorization': f'Bearer {token.token}'},
            'timeout': timeout if timeout is not None else self.default_timeout,
        }

        if method in ('GET', 'DELETE'):
            kwargs['params'] = encode_query(params)
        elif files:
            kwargs['data'] = encode_query(params)
            kwargs['files'] = files
        else:
            kwargs['json'] = params or {}

        logger.debug(f"{method} {endpoint}")

        try:
            return self.session.request(method, url, **kwargs), token
        except requests.exceptions.Timeout as e:
            logger.error(f"Request timeout: {method} {endpoint}")
            raise TransportError(f"Request timed out: {method} {endpoint}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error: {e}")
            raise TransportError(f"Request failed: {e}") from e

    def request_json(self, method: str, endpoint: str,
                     params: Optional[Dict[str, Any]] = None,
                     **kwargs) -> Dict[str, Any]:
        """Send a request and decode the Marketo JSON envelope.

        Marketo reports most failures as HTTP 200 with success=false, so
        a non-2xx response carrying an envelope is decoded and returned
        as well.

        Returns:
            Decoded response body

        Raises:
            TransportError: Non-2xx response without a Marketo envelope
            DecodeError: Body is not a JSON object
        """
        response, token = self._send(method, endpoint, params, **kwargs)

        try:
            data = response.json()
        except ValueError as e:
            if not response.ok:
                raise TransportError(
                    f"API error ({response.status_code}): {response.text[:200]}",
                    status_code=response.status_code
                ) from e
            raise DecodeError(f"Invalid JSON in response from {endpoint}") from e

        if not isinstance(data, dict):
            if not response.ok:
                raise TransportError(f"API error ({response.status_code})",
                                     status_code=response.status_code)
            raise DecodeError(f"Expected JSON object from {endpoint}, got {type(data).__name__}")

        if not response.ok:
            if 'success' not in data:
                raise TransportError(
                    f"API error ({response.status_code}): {data}",
                    status_code=response.status_code
                )
            logger.warning(f"HTTP {response.status_code} from {endpoint}, returning error envelope")

        self._check_token_error(data, token)
        return data

    def request_text(self, method: str, endpoint: str,
                     params: Optional[Dict[str, Any]] = None,
                     **kwargs) -> str:
        """Send a request whose response is file content rather than JSON.

        Marketo answers file endpoints with a JSON envelope instead of the
        file when the call fails (bad token, unknown batch, ...).

        Raises:
            TransportError: Network failure or non-2xx response
            ApiError: The body is an envelope with success=false
        """
        response, token = self._send(method, endpoint, params, **kwargs)

        if not response.ok:
            raise TransportError(
                f"API error ({response.status_code}): {response.text[:200]}",
                status_code=response.status_code
            )

        data = _envelope_or_none(response)
        if data is not None:
            self._check_token_error(data, token)
            if not data.get('success'):
                errors = data.get('errors') or []
                raise ApiError(f"Marketo rejected {endpoint}: {errors}", errors=errors)

        return response.text

    def _check_token_error(self, data: Dict[str, Any], token):
        """Drop the rejected token if the envelope reports 601/602."""
        for error in data.get('errors') or []:
            if isinstance(error, dict) and str(error.get('code')) in TOKEN_ERROR_CODES:
                logger.warning("Access token rejected by Marketo, dropping cached token")
                self.token_provider.invalidate(token)
                return


def _envelope_or_none(response: requests.Response) -> Optional[Dict[str, Any]]:
    """Decoded body if it is a Marketo envelope, otherwise None."""
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict) and 'success' in data:
        return data
    return None


def encode_query(params: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Flatten parameters for a query string or form body.

    Lists and tuples are comma-joined, booleans lower-cased and
    None values dropped.
    """
    encoded = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            encoded[key] = ','.join(str(v) for v in value)
        elif isinstance(value, bool):
            encoded[key] = 'true' if value else 'false'
        else:
            encoded[key] = str(value)
    return encoded

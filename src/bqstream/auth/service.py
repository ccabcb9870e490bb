"""Credential session for BigQuery service accounts.

Reads service-account key material, exchanges a signed JWT assertion for a
bearer token, and caches the token together with a backend bound to it.
The cached pair is reused until the token is about to expire.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Union

import httpx
import jwt
from pydantic import ValidationError

from ..backend.base import QueryBackend
from ..errors import AuthError
from .models import AccessToken, ServiceAccountKey, TokenResponse

BIGQUERY_SCOPE = 'https://www.googleapis.com/auth/bigquery'
JWT_BEARER_GRANT = 'urn:ietf:params:oauth:grant-type:jwt-bearer'

# Lifetime requested for the JWT assertion (Google's maximum)
ASSERTION_LIFETIME = 3600

logger = logging.getLogger(__name__)


def load_key(key_path: Union[str, Path], account_email: Optional[str] = None) -> ServiceAccountKey:
    """Load service-account key material from disk.

    Accepts either a JSON key file or a bare PEM private key. A PEM key
    carries no identity, so ``account_email`` is required for it; for a JSON
    key it overrides the file's ``client_email``.

    Raises:
        AuthError: If the file cannot be read or does not hold a usable key
    """
    path = Path(key_path).expanduser()
    try:
        content = path.read_text()
    except OSError as e:
        raise AuthError(f'Unable to read key material from {path}: {e}') from e

    if content.lstrip().startswith('{'):
        try:
            key_data = json.loads(content)
        except json.JSONDecodeError as e:
            raise AuthError(f'Invalid JSON key file {path}: {e}') from e
        if account_email:
            key_data['client_email'] = account_email
    else:
        if not account_email:
            raise AuthError(f'Key file {path} is a bare PEM key; an account email is required')
        key_data = {'client_email': account_email, 'private_key': content}

    try:
        return ServiceAccountKey.model_validate(key_data)
    except ValidationError as e:
        raise AuthError(f'Invalid service account key in {path}: {e}') from e


class TokenExchanger:
    """Exchanges a signed JWT assertion for an OAuth2 access token.

    Args:
        scope: OAuth2 scope requested for the token
        timeout: HTTP timeout in seconds
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        scope: str = BIGQUERY_SCOPE,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.scope = scope
        self._http = httpx.Client(timeout=timeout, transport=transport)

    def build_assertion(self, key: ServiceAccountKey, now: Optional[int] = None) -> str:
        """Sign the RS256 assertion identifying the service account."""
        issued_at = int(time.time()) if now is None else now
        payload = {
            'iss': key.client_email,
            'scope': self.scope,
            'aud': key.token_uri,
            'iat': issued_at,
            'exp': issued_at + ASSERTION_LIFETIME,
        }
        headers = {'kid': key.private_key_id} if key.private_key_id else None
        try:
            return jwt.encode(payload, key.private_key, algorithm='RS256', headers=headers)
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise AuthError(f'Unable to sign token assertion for {key.client_email}: {e}') from e

    def exchange(self, key: ServiceAccountKey) -> AccessToken:
        """Request an access token for the service account.

        Returns:
            AccessToken with absolute expiry

        Raises:
            AuthError: If the request fails or the exchange is rejected
        """
        assertion = self.build_assertion(key)

        try:
            response = self._http.post(
                key.token_uri,
                data={'grant_type': JWT_BEARER_GRANT, 'assertion': assertion},
                headers={'Accept': 'application/json'},
            )
        except httpx.HTTPError as e:
            raise AuthError(f'Token request to {key.token_uri} failed: {e}') from e

        if response.status_code != 200:
            error_msg = 'Token exchange rejected'
            try:
                error_data = response.json()
                if 'error_description' in error_data:
                    error_msg = error_data['error_description']
                elif 'error' in error_data:
                    error_msg = str(error_data['error'])
            except ValueError:
                pass
            raise AuthError(f'{error_msg} (status: {response.status_code})')

        try:
            token_response = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise AuthError(f'Invalid token response: {e}') from e

        return AccessToken.from_response(token_response)

    def close(self) -> None:
        self._http.close()


@dataclass
class Session:
    """A bearer token and the backend handle bound to it."""

    token: AccessToken
    backend: QueryBackend


class CredentialSession:
    """Owns the reusable token/backend pair for one client.

    ``acquire()`` returns the cached session while its token is valid and
    performs a full credential exchange otherwise. Refreshes are serialized,
    so concurrent queries sharing a session trigger at most one exchange.
    A replaced backend stays open until close(), since other queries may
    still be paging through it.

    Args:
        key_path: Path to a JSON key file or PEM private key
        account_email: Service account email (required for PEM keys)
        backend_factory: Builds a backend for a fresh token
        exchanger: Token exchanger (defaults to a TokenExchanger)
        refresh_margin: Seconds before expiry at which the token is refreshed

    Example:
        >>> with CredentialSession('~/keys/service-account.json') as credentials:
        ...     session = credentials.acquire()
        ...     session.backend.submit_query('my-project', 'my_dataset', 'select 1', 10)
    """

    def __init__(
        self,
        key_path: Union[str, Path],
        account_email: Optional[str] = None,
        backend_factory: Optional[Callable[[AccessToken], QueryBackend]] = None,
        exchanger: Optional[TokenExchanger] = None,
        refresh_margin: float = 60.0,
    ):
        self.key_path = key_path
        self.account_email = account_email
        self.refresh_margin = refresh_margin
        self._backend_factory = backend_factory or _default_backend_factory
        self._exchanger = exchanger or TokenExchanger()
        self._session: Optional[Session] = None
        # Replaced backends may still be serving in-flight queries
        self._retired: List[QueryBackend] = []
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def acquire(self) -> Session:
        """Return a session with a valid token, refreshing if needed.

        Raises:
            AuthError: If key material cannot be read or the exchange is rejected
        """
        with self._lock:
            session = self._session
            if session is not None and not session.token.expired(self.refresh_margin):
                self.logger.debug('Reusing cached session')
                return session

            if session is not None:
                self.logger.info('Access token expired or expiring, refreshing')

            key = load_key(self.key_path, self.account_email)
            token = self._exchanger.exchange(key)
            backend = self._backend_factory(token)

            if session is not None:
                self._retired.append(session.backend)

            self._session = Session(token=token, backend=backend)
            self.logger.info(f'Obtained access token for {key.client_email}')
            return self._session

    def invalidate(self) -> None:
        """Force the next acquire() to perform a fresh exchange."""
        with self._lock:
            if self._session is not None:
                self.logger.debug('Invalidating cached session')
                self._retired.append(self._session.backend)
                self._session = None

    def close(self) -> None:
        """Close every backend handed out by this session and the token client."""
        self.invalidate()
        with self._lock:
            retired, self._retired = self._retired, []
        for backend in retired:
            backend.close()
        self._exchanger.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


def _default_backend_factory(token: AccessToken) -> QueryBackend:
    from ..backend.rest import RestQueryBackend

    return RestQueryBackend(token.token)

"""Authentication module for the bqstream client.

Exchanges service-account key material for BigQuery bearer tokens and keeps
the resulting session for reuse.
"""

from .models import AccessToken, ServiceAccountKey, TokenResponse
from .service import CredentialSession, Session, TokenExchanger, load_key

__all__ = [
    'AccessToken',
    'CredentialSession',
    'ServiceAccountKey',
    'Session',
    'TokenExchanger',
    'TokenResponse',
    'load_key',
]

"""Data models for service-account authentication.

Field names of ServiceAccountKey match the JSON key files downloaded from
the Google Cloud console.
"""

import time
from typing import Optional

from pydantic import BaseModel, Field

GOOGLE_TOKEN_URI = 'https://oauth2.googleapis.com/token'


class ServiceAccountKey(BaseModel):
    """Service-account key material."""

    client_email: str = Field(..., description='Service account email, used as the JWT issuer')
    private_key: str = Field(..., description='PEM encoded RSA private key')
    private_key_id: Optional[str] = Field(None, description='Key ID sent as the JWT kid header')
    token_uri: str = Field(GOOGLE_TOKEN_URI, description='OAuth2 token endpoint')
    project_id: Optional[str] = Field(None, description='Project the service account belongs to')


class TokenResponse(BaseModel):
    """Response from the OAuth2 token endpoint."""

    access_token: str = Field(..., description='Bearer token for API requests')
    expires_in: int = Field(3600, description='Seconds until the token expires')
    token_type: str = Field('Bearer', description='Token type')


class AccessToken(BaseModel):
    """A bearer token and its absolute expiry."""

    token: str = Field(..., description='Bearer token for API requests')
    expiry: float = Field(..., description='Expiry as a unix timestamp in seconds')
    token_type: str = Field('Bearer', description='Token type')

    @classmethod
    def from_response(cls, response: TokenResponse, now: Optional[float] = None) -> 'AccessToken':
        issued_at = time.time() if now is None else now
        return cls(token=response.access_token, expiry=issued_at + response.expires_in, token_type=response.token_type)

    def expired(self, margin: float = 0.0) -> bool:
        """True if the token expires within ``margin`` seconds."""
        return self.expiry - margin <= time.time()

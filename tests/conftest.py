# tests/conftest.py
"""
Shared pytest configuration and fixtures for the bqstream test suite.
"""

import json
import logging

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from bqstream.auth.service import CredentialSession
from bqstream.config import ClientConfig
from tests.fixtures.fake_backend import FakeBackend, StubExchanger

logging.basicConfig(level=logging.INFO)


@pytest.fixture(scope='session')
def rsa_private_key():
    """RSA key used to sign and verify token assertions"""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope='session')
def private_key_pem(rsa_private_key):
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture(scope='session')
def public_key_pem(rsa_private_key):
    return (
        rsa_private_key.public_key()
        .public_bytes(encoding=serialization.Encoding.PEM, format=serialization.PublicFormat.SubjectPublicKeyInfo)
        .decode()
    )


@pytest.fixture
def key_file(tmp_path, private_key_pem):
    """Service account JSON key file"""
    path = tmp_path / 'service-account.json'
    path.write_text(
        json.dumps(
            {
                'type': 'service_account',
                'project_id': 'test-project',
                'private_key_id': 'key-123',
                'private_key': private_key_pem,
                'client_email': 'loader@test-project.iam.gserviceaccount.com',
                'token_uri': 'https://oauth2.googleapis.com/token',
            }
        )
    )
    return path


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def exchanger():
    return StubExchanger()


@pytest.fixture
def credential_session(key_file, fake_backend, exchanger):
    """Credential session whose every backend handle is fake_backend"""
    return CredentialSession(key_file, backend_factory=lambda token: fake_backend, exchanger=exchanger)


@pytest.fixture
def client_config():
    return ClientConfig(page_size=2)

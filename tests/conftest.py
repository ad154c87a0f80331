import uuid
from datetime import datetime, timedelta

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

# Register every mapper before tests build transient model instances
import mrms.models  # noqa: F401


@pytest.fixture(scope="session")
def rsa_keypair():
    """(private_pem, public_pem) standing in for the identity provider's signing key."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture
def make_token(rsa_keypair):
    private_pem, _ = rsa_keypair

    def _make(sub=None, token_type="access", expires_in=timedelta(minutes=15), **extra):
        claims = {
            "sub": str(sub or uuid.uuid4()),
            "type": token_type,
            "exp": datetime.utcnow() + expires_in,
            **extra,
        }
        return jwt.encode(claims, private_pem, algorithm="RS256")

    return _make

"""Signed client assertions for private_key_jwt / SMART backend services.

The assertion is a short-lived RS256 JWT the client presents instead of a
shared secret:
  header:  {"alg": "RS256", "kid": <registered key id>}
  payload: {"iss", "sub", "aud", "jti", "iat", "exp" = iat + 300}
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from pathlib import Path

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ..errors import FileReadError, SigningError


ASSERTION_LIFETIME_SECONDS = 300
ASSERTION_ALGORITHM = "RS256"


def sign_client_assertion(
    client_id: str,
    audience: str,
    kid: str,
    private_key_path: str | Path,
    id_factory: Callable[[], str] | None = None,
    clock: Callable[[], float] = time.time,
) -> str:
    """Sign a client assertion JWT with the PEM private key at `private_key_path`.

    Args:
        client_id: Used as both iss and sub.
        audience: The authorization server's token URL (or its AUD override).
        kid: Key id registered with the authorization server's JWKS.
        private_key_path: Path to a PEM-encoded RSA private key (PKCS#8 or PKCS#1).
        id_factory: Source of the jti claim. Defaults to uuid4.
        clock: Source of the current UNIX time.

    Returns:
        The compact, signed JWT.

    Raises:
        FileReadError: if the key file is missing or unreadable.
        SigningError: if the key is not a usable RSA private key.
    """
    key = load_private_key(private_key_path)
    now = int(clock())
    claims = {
        "iss": client_id,
        "sub": client_id,
        "aud": audience,
        "jti": (id_factory or _uuid)(),
        "iat": now,
        "exp": now + ASSERTION_LIFETIME_SECONDS,
    }
    try:
        return jwt.encode(claims, key, algorithm=ASSERTION_ALGORITHM, headers={"kid": kid})
    except (jwt.PyJWTError, ValueError, TypeError) as exc:
        raise SigningError(f"Failed to sign client assertion: {exc}") from exc


def load_private_key(private_key_path: str | Path) -> rsa.RSAPrivateKey:
    """Read and decode an RSA private key from a PEM file."""
    path = Path(private_key_path)
    try:
        pem = path.read_bytes()
    except OSError as exc:
        raise FileReadError(path, exc.strerror or str(exc)) from exc

    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise SigningError(f"{path} is not a valid PEM private key: {exc}") from exc

    if not isinstance(key, rsa.RSAPrivateKey):
        raise SigningError(f"{path} holds a {type(key).__name__}; RS256 needs an RSA key")
    return key


def _uuid() -> str:
    return str(uuid.uuid4())

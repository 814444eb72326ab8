"""Generate the RSA key pair used for private_key_jwt client assertions.

The private key is written as PKCS#8 PEM with owner-only permissions; the
public half is returned as a JWKS to register with the authorization server.
"""

from __future__ import annotations

import json
import os
import uuid
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm


KEY_SIZE = 2048


def generate_key_pair(out_path: str | Path = "private.pem", kid: str | None = None) -> dict:
    """Create an RSA-2048 key, write the private PEM to `out_path` (mode 0600), return the JWKS.

    Args:
        out_path: Destination for the PKCS#8 private key.
        kid: Key id for the JWK. Defaults to the KID env var, then a fresh UUID.

    Returns:
        {"keys": [jwk]} with kty=RSA, use=sig, alg=RS256 and kid set.
    """
    kid = kid or os.environ.get("KID") or str(uuid.uuid4())
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=KEY_SIZE)

    pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    path = Path(out_path)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as handle:
        handle.write(pem)
    os.chmod(path, 0o600)

    jwk = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kty": "RSA", "use": "sig", "alg": "RS256", "kid": kid})
    return {"keys": [jwk]}

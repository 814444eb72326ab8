from .client_assertion import sign_client_assertion
from .ecr_token_client import EcrNowTokenClient
from .fhir_token_client import FHIRTokenClient
from .strategies import (
    AuthMode,
    ClientSecretBasic,
    ClientSecretPost,
    PrivateKeyJwt,
    build_auth_strategy,
)

__all__ = [
    "AuthMode",
    "ClientSecretBasic",
    "ClientSecretPost",
    "EcrNowTokenClient",
    "FHIRTokenClient",
    "PrivateKeyJwt",
    "build_auth_strategy",
    "sign_client_assertion",
]

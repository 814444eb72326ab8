"""FHIR client-authentication strategies.

AUTH_MODE selects exactly one variant. Each variant carries only the fields
its token request needs, and build_auth_strategy() checks all of them before
any network call.
"""

from __future__ import annotations

from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict

from ..config import Settings
from ..errors import ConfigurationError, UnsupportedModeError


class AuthMode(str, Enum):
    SOF_BACKEND = "SOF_BACKEND"
    PRIVATE_KEY_JWT = "PRIVATE_KEY_JWT"
    CLIENT_SECRET_BASIC = "CLIENT_SECRET_BASIC"
    CLIENT_SECRET_POST = "CLIENT_SECRET_POST"

    @classmethod
    def parse(cls, value: str) -> "AuthMode":
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise UnsupportedModeError(value) from None


class PrivateKeyJwt(BaseModel):
    """SOF_BACKEND / PRIVATE_KEY_JWT: client_assertion signed with a registered key."""

    model_config = ConfigDict(frozen=True)

    mode: AuthMode = AuthMode.PRIVATE_KEY_JWT
    client_id: str
    kid: str
    private_key_path: str


class ClientSecretBasic(BaseModel):
    """CLIENT_SECRET_BASIC: id and secret in an HTTP Basic Authorization header."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: str


class ClientSecretPost(BaseModel):
    """CLIENT_SECRET_POST: id and secret in the form body."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: str


AuthStrategy = Union[PrivateKeyJwt, ClientSecretBasic, ClientSecretPost]

_COMMON_FIELDS = ("token_url", "client_id", "fhir_base")
_MODE_FIELDS: dict[AuthMode, tuple[str, ...]] = {
    AuthMode.SOF_BACKEND:         ("kid", "private_key_path"),
    AuthMode.PRIVATE_KEY_JWT:     ("kid", "private_key_path"),
    AuthMode.CLIENT_SECRET_BASIC: ("client_secret",),
    AuthMode.CLIENT_SECRET_POST:  ("client_secret",),
}


def build_auth_strategy(settings: Settings) -> AuthStrategy:
    """Validate the FHIR auth settings and return the matching strategy.

    Raises:
        UnsupportedModeError: if AUTH_MODE is not one of AuthMode.
        ConfigurationError: listing every missing env var (common and mode-specific).
    """
    mode = AuthMode.parse(settings.auth_mode)
    missing = settings.missing(*_COMMON_FIELDS, *_MODE_FIELDS[mode])
    if missing:
        raise ConfigurationError(
            f"Missing configuration for AUTH_MODE={mode.value}: {', '.join(missing)}",
            missing=missing,
        )

    if mode in (AuthMode.SOF_BACKEND, AuthMode.PRIVATE_KEY_JWT):
        return PrivateKeyJwt(
            mode=mode,
            client_id=settings.client_id,
            kid=settings.kid,
            private_key_path=settings.private_key_path,
        )
    if mode is AuthMode.CLIENT_SECRET_BASIC:
        return ClientSecretBasic(client_id=settings.client_id, client_secret=settings.client_secret)
    return ClientSecretPost(client_id=settings.client_id, client_secret=settings.client_secret)

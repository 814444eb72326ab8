"""FHIR authorization-server token client.

One client_credentials grant, three ways to prove who the client is:
  - PrivateKeyJwt:     client_assertion JWT signed with our RSA key
                       (SMART backend services; AUTH_MODE SOF_BACKEND or PRIVATE_KEY_JWT)
  - ClientSecretBasic: HTTP Basic header with client id and secret
  - ClientSecretPost:  client id and secret in the form body
"""

from __future__ import annotations

import base64
import logging

import requests

from ..config import Settings
from ..errors import TokenResponseError, UnsupportedModeError
from .base_token_client import BaseTokenClient
from .client_assertion import sign_client_assertion
from .strategies import (
    AuthStrategy,
    ClientSecretBasic,
    ClientSecretPost,
    PrivateKeyJwt,
    build_auth_strategy,
)


logger = logging.getLogger(__name__)

JWT_BEARER_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"


class FHIRTokenClient(BaseTokenClient):
    """Exchange client credentials for a FHIR bearer token."""

    timeout = 25.0

    def __init__(
        self,
        token_url: str,
        strategy: AuthStrategy,
        scope: str | None = "system/*.read",
        audience: str | None = None,
        require_aud: bool = True,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(token_url, session)
        self.strategy = strategy
        self.scope = scope
        self.audience = audience or token_url
        self.require_aud = require_aud

    @classmethod
    def from_settings(
        cls, settings: Settings, session: requests.Session | None = None
    ) -> "FHIRTokenClient":
        """Validate settings eagerly and build a client; no network call is made."""
        strategy = build_auth_strategy(settings)
        return cls(
            token_url=settings.token_url,
            strategy=strategy,
            scope=settings.scope,
            audience=settings.audience,
            require_aud=settings.require_aud,
            session=session,
        )

    def build_request(self) -> tuple[list[tuple[str, str]], dict[str, str]]:
        """Return the (form fields, extra headers) for the token POST."""
        form: list[tuple[str, str]] = [("grant_type", "client_credentials")]
        if self.scope:
            form.append(("scope", self.scope))
        headers = {"Accept": "application/json"}

        strategy = self.strategy
        if isinstance(strategy, PrivateKeyJwt):
            assertion = sign_client_assertion(
                client_id=strategy.client_id,
                audience=self.audience,
                kid=strategy.kid,
                private_key_path=strategy.private_key_path,
            )
            form += [
                ("client_id", strategy.client_id),
                ("client_assertion_type", JWT_BEARER_ASSERTION_TYPE),
                ("client_assertion", assertion),
            ]
        elif isinstance(strategy, ClientSecretBasic):
            credentials = f"{strategy.client_id}:{strategy.client_secret}".encode("utf-8")
            headers["Authorization"] = "Basic " + base64.b64encode(credentials).decode("ascii")
        elif isinstance(strategy, ClientSecretPost):
            form += [
                ("client_id", strategy.client_id),
                ("client_secret", strategy.client_secret),
            ]
        else:
            raise UnsupportedModeError(type(strategy).__name__)

        if self.require_aud and self.audience:
            form.append(("aud", self.audience))
        return form, headers

    def authenticate(self) -> str:
        """Obtain an access token from the FHIR token endpoint.

        Raises:
            TokenResponseError: if the response has no access_token.
            RequestTimeoutError: if the endpoint does not answer within 25 seconds.
            requests.HTTPError: on a non-2xx response.
        """
        form, headers = self.build_request()
        logger.info("Requesting FHIR token (%s) from %s", _strategy_name(self.strategy), self.token_url)
        body = self._post_token_request(form, headers)
        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise TokenResponseError(self.token_url, body)
        self._access_token = token
        return token


def _strategy_name(strategy: AuthStrategy) -> str:
    if isinstance(strategy, PrivateKeyJwt):
        return strategy.mode.value
    if isinstance(strategy, ClientSecretBasic):
        return "CLIENT_SECRET_BASIC"
    return "CLIENT_SECRET_POST"

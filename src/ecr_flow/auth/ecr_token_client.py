"""eCRNow token client: plain client_credentials, no client assertion."""

from __future__ import annotations

import logging

import requests

from ..config import Settings
from .base_token_client import BaseTokenClient


logger = logging.getLogger(__name__)


class EcrNowTokenClient(BaseTokenClient):
    """Obtain a bearer token for the eCRNow API."""

    timeout = 20.0

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str | None = None,
        user_id: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(token_url, session)
        self.client_id = client_id
        self.client_secret = client_secret
        self.user_id = user_id

    @classmethod
    def from_settings(
        cls, settings: Settings, session: requests.Session | None = None
    ) -> "EcrNowTokenClient":
        settings.require("ecrnow_token_url", "ecrnow_client_id")
        return cls(
            token_url=settings.ecrnow_token_url,
            client_id=settings.ecrnow_client_id,
            client_secret=settings.ecrnow_client_secret,
            user_id=settings.ecrnow_user_id,
            session=session,
        )

    def authenticate(self) -> str | None:
        """Return the access token, or None when the response carries none."""
        form = [("grant_type", "client_credentials"), ("client_id", self.client_id)]
        if self.client_secret:
            form.append(("client_secret", self.client_secret))
        if self.user_id:
            form.append(("userId", self.user_id))

        logger.info("Requesting eCRNow token from %s", self.token_url)
        body = self._post_token_request(form)
        self._access_token = body.get("access_token") if isinstance(body, dict) else None
        return self._access_token

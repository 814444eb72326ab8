"""Abstract base class for OAuth2 client_credentials token clients."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import requests

from ..errors import RequestTimeoutError


logger = logging.getLogger(__name__)

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class BaseTokenClient(ABC):
    """Shared plumbing for the FHIR and eCRNow token endpoints."""

    timeout: float = 25.0

    def __init__(self, token_url: str, session: requests.Session | None = None) -> None:
        self.token_url = token_url
        self._session = session or requests.Session()
        self._access_token: str | None = None

    @property
    def access_token(self) -> str | None:
        return self._access_token

    @abstractmethod
    def authenticate(self) -> str | None:
        """Obtain an OAuth2 access token. Returns the token string."""

    def _post_token_request(
        self,
        data: list[tuple[str, str]],
        headers: dict[str, str] | None = None,
    ) -> dict:
        """POST a form-encoded grant and return the decoded JSON body."""
        request_headers = {"Content-Type": _FORM_CONTENT_TYPE}
        if headers:
            request_headers.update(headers)

        logger.debug("POST %s (grant_type=client_credentials)", self.token_url)
        try:
            response = self._session.post(
                self.token_url,
                data=data,
                headers=request_headers,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise RequestTimeoutError(self.token_url, self.timeout) from exc
        response.raise_for_status()
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

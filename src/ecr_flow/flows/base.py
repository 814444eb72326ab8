"""Abstract base class for the launch and notify flows."""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable

import requests

from ..auth.ecr_token_client import EcrNowTokenClient
from ..auth.fhir_token_client import FHIRTokenClient
from ..config import Settings
from ..errors import TokenResponseError
from ..fhir.encounter_resolver import EncounterResolver
from ..fhir.fhir_client import FHIRClient
from ..models import FlowResult


logger = logging.getLogger(__name__)


class BaseFlow(ABC):
    """Validates configuration up front, then acquires both tokens and runs."""

    name: str = ""

    def __init__(
        self,
        settings: Settings,
        session: requests.Session | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.settings = settings
        self._session = session or requests.Session()
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))
        # Token clients validate their settings on construction; no request is sent yet.
        self._fhir_auth = FHIRTokenClient.from_settings(settings, self._session)
        self._ecr_auth = EcrNowTokenClient.from_settings(settings, self._session)
        settings.require(*self.required_settings())

    def required_settings(self) -> tuple[str, ...]:
        return ("fhir_base",)

    @abstractmethod
    def run(self) -> FlowResult:
        """Execute the flow and report what was submitted, skipped and failed."""

    def acquire_tokens(self) -> tuple[str, str]:
        """Return (FHIR token, eCRNow token); an empty eCRNow token is fatal."""
        logger.info("Getting FHIR token (%s)", self.settings.auth_mode)
        fhir_token = self._fhir_auth.authenticate()
        logger.info("FHIR token OK")

        logger.info("Getting eCRNow access token")
        ecr_token = self._ecr_auth.authenticate()
        if not ecr_token:
            raise TokenResponseError(self._ecr_auth.token_url, "empty access_token")
        logger.info("eCRNow token OK")
        return fhir_token, ecr_token

    def resolver(self, fhir_token: str) -> EncounterResolver:
        client = FHIRClient(self.settings.fhir_base, access_token=fhir_token, session=self._session)
        return EncounterResolver(client)


def response_detail(exc: Exception) -> str:
    """HTTP status and body of a failed request, or the exception text."""
    response = getattr(exc, "response", None)
    if response is None:
        return str(exc)
    return f"HTTP {response.status_code}: {response.text[:2000]}"

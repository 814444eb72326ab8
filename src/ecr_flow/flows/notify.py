"""Notify flow: relay condition-linked Encounters as subscription notifications.

Encounters are found by condition codes (POST or GET search per
USE_POST_SEARCH) and each is posted to RECEIVE_NOTIFICATION_URL inside a
backport subscription-notification Bundle.
"""

from __future__ import annotations

import logging

import requests

from ..errors import RequestTimeoutError
from ..fhir.notification_bundle import SubmitAuth, submit_encounter
from ..models import FlowResult
from .base import BaseFlow, response_detail


logger = logging.getLogger(__name__)


class NotifyFlow(BaseFlow):
    """Condition-code Encounter search followed by one notification Bundle per Encounter."""

    name = "notify"

    def required_settings(self) -> tuple[str, ...]:
        return ("fhir_base", "notify_url")

    def run(self) -> FlowResult:
        fhir_token, ecr_token = self.acquire_tokens()
        settings = self.settings

        logger.info("Querying FHIR for condition-linked Encounters (USE_POST_SEARCH=%s)", settings.use_post_search)
        encounters = self.resolver(fhir_token).resolve(settings)
        logger.info("Found %d Encounter(s)", len(encounters))

        auth = SubmitAuth(type="bearer", token=ecr_token)
        result = FlowResult(flow=self.name, encounters_found=len(encounters))
        for position, encounter in enumerate(encounters, start=1):
            encounter_id = encounter.get("id")
            if not encounter_id:
                logger.warning("Skipping Encounter without an id")
                result.skipped.append(None)
                continue
            try:
                submit_encounter(
                    settings.notify_url,
                    encounter,
                    auth=auth,
                    session=self._session,
                    id_factory=self._new_id,
                    subscription_url=settings.subscription_url,
                    topic_canonical=settings.topic_canonical,
                    events_since_start=position,
                    events_in_notification=1,
                )
            except (requests.RequestException, RequestTimeoutError) as exc:
                logger.error("Notification failed for Encounter/%s: %s", encounter_id, response_detail(exc))
                result.failed.append(encounter_id)
                continue
            logger.info("Notification delivered for Encounter/%s", encounter_id)
            result.submitted.append(encounter_id)

        logger.info(result.summary())
        return result

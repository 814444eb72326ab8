"""Launch flow: ask eCRNow to evaluate each Encounter in a date window.

For every Encounter with an id and a Patient subject, POST
{ECRNOW_API_BASE}/api/launchPatient. One failed launch never stops the rest.
"""

from __future__ import annotations

import logging

import requests

from ..errors import RequestTimeoutError
from ..models import FlowResult
from .base import BaseFlow, response_detail


logger = logging.getLogger(__name__)

LAUNCH_TIMEOUT = 60.0


def patient_id_from_encounter(encounter: dict) -> str | None:
    """'Patient/56089' in Encounter.subject -> '56089'."""
    reference = (encounter.get("subject") or {}).get("reference") or ""
    if reference.startswith("Patient/"):
        return reference.split("/")[1] or None
    return None


class LaunchFlow(BaseFlow):
    """Date-range Encounter search followed by one launchPatient call per Encounter."""

    name = "launch"

    def required_settings(self) -> tuple[str, ...]:
        return ("fhir_base", "ecrnow_api_base")

    @property
    def launch_url(self) -> str:
        return f"{self.settings.ecrnow_api_base.rstrip('/')}/api/launchPatient"

    def run(self) -> FlowResult:
        fhir_token, ecr_token = self.acquire_tokens()
        settings = self.settings

        logger.info("Querying FHIR for Encounters between %s and %s", settings.start_date, settings.end_date)
        encounters = self.resolver(fhir_token).by_date_range(
            start=settings.start_date,
            end=settings.end_date,
            date_field=settings.date_field,
            patient_id=settings.patient_id,
            status=settings.encounter_status,
            count=settings.page_size,
        )
        logger.info("Found %d Encounter(s)", len(encounters))

        result = FlowResult(flow=self.name, encounters_found=len(encounters))
        for encounter in encounters:
            encounter_id = encounter.get("id")
            patient_id = patient_id_from_encounter(encounter)
            if not encounter_id or not patient_id:
                logger.warning(
                    "Skipping encounter with missing ids (encounterId=%s, patientId=%s)",
                    encounter_id, patient_id,
                )
                result.skipped.append(encounter_id)
                continue

            logger.info("POST %s (Encounter/%s, Patient/%s)", self.launch_url, encounter_id, patient_id)
            try:
                body = self.launch_patient(ecr_token, encounter_id, patient_id)
            except (requests.RequestException, RequestTimeoutError) as exc:
                logger.error("launchPatient failed for Encounter/%s: %s", encounter_id, response_detail(exc))
                result.failed.append(encounter_id)
                continue
            logger.info("launchPatient OK for Encounter/%s: %s", encounter_id, body)
            result.submitted.append(encounter_id)

        logger.info(result.summary())
        return result

    def launch_patient(self, ecr_token: str, encounter_id: str, patient_id: str) -> object:
        """POST one launchPatient request and return the decoded response body."""
        payload = {
            "fhirServerURL": self.settings.fhir_base,
            "patientId": patient_id,
            "encounterId": encounter_id,
            "validationMode": self.settings.validation_mode,
            "throttleContext": self.settings.throttle_context,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {ecr_token}",
            "X-Request-ID": self._new_id(),
            "X-Correlation-ID": self._new_id(),
        }
        try:
            response = self._session.post(
                self.launch_url, json=payload, headers=headers, timeout=LAUNCH_TIMEOUT
            )
        except requests.Timeout as exc:
            raise RequestTimeoutError(self.launch_url, LAUNCH_TIMEOUT) from exc
        response.raise_for_status()
        try:
            return response.json()
        except ValueError:
            return response.text

"""Resolve the set of Encounters a run should report on.

Three strategies, each returning Encounters deduplicated by id:

  by_date_range            GET Encounter?<date>=ge..&<date>=le..
  by_condition_codes       GET Encounter?code=..; if empty, GET Condition?code=..
                           and read each Condition.encounter individually
  by_condition_codes_post  POST Condition/_search with _include=Condition:encounter,
                           fill gaps by direct reads; if still empty, re-search
                           without _include and read every reference

Every strategy follows `next` links until the server stops sending them. A
failed individual read is logged and skipped; partial results are returned.
"""

from __future__ import annotations

import logging

import requests

from ..config import Settings
from ..errors import RequestTimeoutError
from .fhir_client import FHIRClient, bundle_resources


logger = logging.getLogger(__name__)

CONDITION_SEARCH_READ_TIMEOUT = 15.0
CONDITION_POST_READ_TIMEOUT = 20.0


def build_code_param(codes_csv: str | None) -> str:
    """Normalize a 'system|code,system|code' list into one OR-ed `code` value."""
    parts = (part.strip() for part in (codes_csv or "").split(","))
    return ",".join(part for part in parts if part)


def encounter_id_from_reference(reference: str | None) -> str | None:
    """'Encounter/123' -> '123'. Anything else -> None."""
    if not reference or not reference.startswith("Encounter/"):
        return None
    return reference.split("/")[1] or None


def date_params(date_field: str, start: str | None, end: str | None) -> list[tuple[str, str]]:
    params = []
    if start:
        params.append((date_field, f"ge{start}"))
    if end:
        params.append((date_field, f"le{end}"))
    return params


class EncounterResolver:
    """Find Encounters on a FHIR server; results are keyed and deduplicated by id."""

    def __init__(self, client: FHIRClient) -> None:
        self._client = client

    def resolve(self, settings: Settings) -> list[dict]:
        """Run the condition-code strategy selected by USE_POST_SEARCH."""
        if settings.use_post_search:
            return self.by_condition_codes_post(
                codes_csv=settings.codes_csv,
                start=settings.start_date,
                end=settings.end_date,
                date_field=settings.date_field,
                include_patient=settings.include_patient,
                count=settings.page_size,
            )
        return self.by_condition_codes(
            codes_csv=settings.codes_csv,
            start=settings.start_date,
            end=settings.end_date,
            date_field=settings.date_field,
            count=settings.page_size,
        )

    def by_date_range(
        self,
        start: str | None = None,
        end: str | None = None,
        date_field: str = "date",
        patient_id: str | None = None,
        status: str | None = None,
        count: int = 100,
    ) -> list[dict]:
        """Encounters whose `date_field` falls within [start, end].

        Args:
            start: Lower bound, e.g. '2025-02-25' or a full dateTime.
            end: Upper bound.
            date_field: Encounter search parameter; 'date' maps to Encounter.period.
            patient_id: Optional '123' or 'Patient/123'.
            status: Optional comma-separated statuses, e.g. 'finished,in-progress'.
            count: Page size.
        """
        params = date_params(date_field, start, end)
        if patient_id:
            reference = patient_id if patient_id.startswith("Patient/") else f"Patient/{patient_id}"
            params.append(("patient", reference))
        if status:
            params.append(("status", status))
        params.append(("_count", str(count)))

        encounters: dict[str, dict] = {}
        for page in self._client.search("Encounter", params):
            _harvest(page, encounters)
        return list(encounters.values())

    def by_condition_codes(
        self,
        codes_csv: str | None,
        start: str | None = None,
        end: str | None = None,
        date_field: str = "recorded-date",
        count: int = 100,
    ) -> list[dict]:
        """Encounters linked to Conditions with the given codes, via GET searches."""
        params = _condition_params(codes_csv, start, end, date_field)
        params.append(("_count", str(count)))

        encounters: dict[str, dict] = {}
        for page in self._client.search("Encounter", params):
            _harvest(page, encounters)

        if not encounters:
            logger.info("No Encounters matched directly; following Condition.encounter references")
            for page in self._client.search("Condition", params):
                for condition in bundle_resources(page, "Condition"):
                    self._fetch_referenced(condition, encounters, CONDITION_SEARCH_READ_TIMEOUT)

        return list(encounters.values())

    def by_condition_codes_post(
        self,
        codes_csv: str | None,
        start: str | None = None,
        end: str | None = None,
        date_field: str = "recorded-date",
        include_patient: bool = True,
        count: int = 100,
    ) -> list[dict]:
        """Encounters linked to Conditions with the given codes, via POST Condition/_search.

        If the server answers 400 for the date parameter, try date_field
        'onset-date' or '_lastUpdated'.
        """
        base = _condition_params(codes_csv, start, end, date_field)
        form = base + [("_include", "Condition:encounter")]
        if include_patient:
            form.append(("_include", "Condition:subject"))
        form.append(("_count", str(count)))

        encounters: dict[str, dict] = {}
        for page in self._client.search_post("Condition", form):
            included = _harvest(page, encounters)
            conditions = list(bundle_resources(page, "Condition"))
            linked = [c for c in conditions if _encounter_reference(c)]
            logger.info(
                "Page: %d Condition(s), %d referencing an Encounter, %d Encounter(s) included",
                len(conditions), len(linked), included,
            )
            if conditions and not linked:
                logger.warning(
                    "No Condition.encounter references present. "
                    "Either the data lacks links or _include is unsupported."
                )
            for condition in linked:
                self._fetch_referenced(condition, encounters, CONDITION_POST_READ_TIMEOUT)

        logger.info("Total Encounters collected (includes + direct reads): %d", len(encounters))

        if not encounters:
            logger.info("No Encounters harvested; re-running Condition search without _include")
            for page in self._client.search_post("Condition", base + [("_count", str(count))]):
                for condition in bundle_resources(page, "Condition"):
                    self._fetch_referenced(condition, encounters, CONDITION_POST_READ_TIMEOUT)

        return list(encounters.values())

    def _fetch_referenced(self, condition: dict, encounters: dict[str, dict], timeout: float) -> None:
        """Read the Encounter a Condition points at, unless it is already held."""
        reference = _encounter_reference(condition)
        encounter_id = encounter_id_from_reference(reference)
        if not encounter_id or encounter_id in encounters:
            return

        try:
            resource = self._client.get_resource("Encounter", encounter_id, timeout=timeout)
        except (requests.RequestException, RequestTimeoutError, ValueError) as exc:
            logger.warning("Skipping %s: fetch failed: %s", reference, _describe(exc))
            return

        if isinstance(resource, dict) and resource.get("resourceType") == "Encounter" and resource.get("id"):
            encounters[resource["id"]] = resource
            logger.info("Pulled Encounter/%s via direct GET", resource["id"])
        else:
            logger.warning("Skipping %s: response is not an Encounter with an id", reference)


def _condition_params(
    codes_csv: str | None, start: str | None, end: str | None, date_field: str
) -> list[tuple[str, str]]:
    params: list[tuple[str, str]] = []
    code = build_code_param(codes_csv)
    if code:
        params.append(("code", code))
    return params + date_params(date_field, start, end)


def _encounter_reference(condition: dict) -> str | None:
    reference = (condition.get("encounter") or {}).get("reference")
    return reference if encounter_id_from_reference(reference) else None


def _harvest(bundle: dict, encounters: dict[str, dict]) -> int:
    """Merge the Bundle's Encounter entries into `encounters`; return how many were seen."""
    seen = 0
    for resource in bundle_resources(bundle, "Encounter"):
        if resource.get("id"):
            encounters[resource["id"]] = resource
            seen += 1
    return seen


def _describe(exc: Exception) -> str:
    response = getattr(exc, "response", None)
    if response is not None:
        return f"HTTP {response.status_code}: {response.text[:500]}"
    return str(exc)


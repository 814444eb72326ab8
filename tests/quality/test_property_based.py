"""Property-based tests using Hypothesis.

These exercise the pure helpers directly: code-list normalization, reference
parsing, Bundle construction and settings validation. Nothing is mocked.
"""

from __future__ import annotations

import string

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ecr_flow.config import ENV_NAMES, Settings
from ecr_flow.fhir.encounter_resolver import (
    build_code_param,
    date_params,
    encounter_id_from_reference,
)
from ecr_flow.fhir.fhir_client import next_link
from ecr_flow.fhir.notification_bundle import build_notification_bundle, encounter_full_url
from ecr_flow.flows import patient_id_from_encounter
from ecr_flow.models import FlowResult

pytestmark = pytest.mark.quality

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

# FHIR logical ids: [A-Za-z0-9\-\.]{1,64}
fhir_id = st.text(alphabet=string.ascii_letters + string.digits + "-.", min_size=1, max_size=64)

# One 'system|code' token, no commas
code_token = st.text(alphabet=string.ascii_letters + string.digits + "|:/.-", min_size=1, max_size=40)

padding = st.text(alphabet=" \t", max_size=3)

other_types = st.sampled_from(["Patient", "Condition", "Observation", "Group", "encounter"])


# ---------------------------------------------------------------------------
# build_code_param
# ---------------------------------------------------------------------------

class TestBuildCodeParam:
    @given(st.lists(st.tuples(padding, code_token, padding), max_size=8))
    def test_strips_and_keeps_order(self, parts) -> None:
        csv = ",".join(f"{lead}{code}{trail}" for lead, code, trail in parts)
        assert build_code_param(csv) == ",".join(code for _, code, _ in parts)

    @given(st.text(max_size=200))
    def test_idempotent(self, raw: str) -> None:
        once = build_code_param(raw)
        assert build_code_param(once) == once

    @given(st.text(max_size=200))
    def test_never_yields_blank_entries(self, raw: str) -> None:
        result = build_code_param(raw)
        if result:
            assert all(part.strip() == part and part for part in result.split(","))

    @given(st.text(alphabet=" \t\n,", max_size=30))
    def test_whitespace_and_commas_only_is_empty(self, raw: str) -> None:
        assert build_code_param(raw) == ""


# ---------------------------------------------------------------------------
# Reference parsing
# ---------------------------------------------------------------------------

class TestReferences:
    @given(fhir_id)
    def test_encounter_reference_round_trip(self, encounter_id: str) -> None:
        assert encounter_id_from_reference(f"Encounter/{encounter_id}") == encounter_id

    @given(other_types, fhir_id)
    def test_other_resource_types_rejected(self, resource_type: str, resource_id: str) -> None:
        assert encounter_id_from_reference(f"{resource_type}/{resource_id}") is None

    @given(fhir_id)
    def test_patient_id_from_subject(self, patient_id: str) -> None:
        encounter = {"resourceType": "Encounter", "subject": {"reference": f"Patient/{patient_id}"}}
        assert patient_id_from_encounter(encounter) == patient_id

    @given(other_types, fhir_id)
    def test_non_patient_subject_has_no_patient_id(self, resource_type: str, resource_id: str) -> None:
        encounter = {"subject": {"reference": f"{resource_type}/{resource_id}"}}
        assert patient_id_from_encounter(encounter) is None


# ---------------------------------------------------------------------------
# Notification Bundle
# ---------------------------------------------------------------------------

class TestNotificationBundle:
    @given(fhir_id)
    def test_full_url_addresses_the_encounter(self, encounter_id: str) -> None:
        assert encounter_full_url({"id": encounter_id}) == f"Encounter/{encounter_id}"
        assert encounter_full_url({"id": f"Encounter/{encounter_id}"}) == f"Encounter/{encounter_id}"

    @given(fhir_id, st.integers(min_value=0, max_value=10_000), st.integers(min_value=0, max_value=100))
    def test_shape_holds_for_any_encounter(self, encounter_id: str, since_start: int, in_notification: int) -> None:
        encounter = {"resourceType": "Encounter", "id": encounter_id}
        bundle = build_notification_bundle(
            encounter, events_since_start=since_start, events_in_notification=in_notification
        )

        assert bundle["type"] == "history"
        assert len(bundle["entry"]) == 2
        status, focus = bundle["entry"]
        assert status["resource"]["resourceType"] == "Parameters"
        assert status["fullUrl"] == f"urn:uuid:{status['resource']['id']}"
        assert focus["resource"] is encounter
        assert bundle["id"] != status["resource"]["id"]

        values = {p["name"]: p for p in status["resource"]["parameter"]}
        assert values["events-since-subscription-start"]["valueUnsignedInt"] == since_start
        assert values["events-in-notification"]["valueUnsignedInt"] == in_notification
        assert bundle["timestamp"].endswith("Z")


# ---------------------------------------------------------------------------
# Search helpers
# ---------------------------------------------------------------------------

class TestSearchHelpers:
    @given(st.sampled_from(["date", "recorded-date", "onset-date", "_lastUpdated"]),
           st.one_of(st.none(), st.dates().map(str)),
           st.one_of(st.none(), st.dates().map(str)))
    def test_date_params_bounds(self, field: str, start: str | None, end: str | None) -> None:
        params = date_params(field, start, end)
        assert all(name == field for name, _ in params)
        assert len(params) == (start is not None) + (end is not None)
        if start:
            assert (field, f"ge{start}") in params
        if end:
            assert (field, f"le{end}") in params

    @given(st.lists(st.sampled_from(["self", "previous", "first", "last"]), max_size=4),
           st.one_of(st.none(), st.text(alphabet=string.ascii_letters, min_size=1, max_size=20)))
    def test_next_link_only_follows_next(self, relations: list[str], next_url: str | None) -> None:
        links = [{"relation": r, "url": f"https://x/{r}"} for r in relations]
        if next_url:
            links.append({"relation": "next", "url": next_url})
        assert next_link({"link": links}) == next_url


# ---------------------------------------------------------------------------
# Settings and results
# ---------------------------------------------------------------------------

class TestSettings:
    @given(st.sampled_from(["", " ", "\t", "  \n"]))
    def test_blank_values_count_as_missing(self, blank: str) -> None:
        settings = Settings(client_id=blank, token_url="https://auth/token")
        assert settings.missing("client_id", "token_url") == [ENV_NAMES["client_id"]]

    @given(st.text(alphabet=string.ascii_letters + "_", min_size=1, max_size=20))
    def test_auth_mode_upper_cased(self, mode: str) -> None:
        assert Settings(auth_mode=f" {mode} ").auth_mode == mode.upper()

    @given(st.lists(fhir_id, max_size=5), st.lists(fhir_id, max_size=5), st.lists(fhir_id, max_size=5))
    def test_summary_counts(self, submitted: list[str], skipped: list[str], failed: list[str]) -> None:
        found = len(submitted) + len(skipped) + len(failed)
        result = FlowResult(
            flow="launch", encounters_found=found, submitted=submitted, skipped=skipped, failed=failed
        )
        assert result.summary() == (
            f"launch: {found} found, {len(submitted)} submitted, "
            f"{len(skipped)} skipped, {len(failed)} failed"
        )

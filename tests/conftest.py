"""Shared pytest fixtures, mock factories, and test markers.

Test tiers
----------
  unit        Fast, fully offline. HTTP is mocked with requests-mock or
              MagicMock sessions.

  integration Whole flows (token -> search -> submit) against mocked FHIR,
              token and eCRNow endpoints.

  quality     Property-based (Hypothesis) checks of the pure helpers.

Run specific tiers:
  pytest tests/unit tests/integration tests/quality
  pytest tests/ -v
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ecr_flow.config import Settings


FHIR_BASE = "https://fhir.example.com/r4"
TOKEN_URL = "https://auth.example.com/oauth2/token"
ECR_TOKEN_URL = "https://ecr.example.com/auth/token"
ECR_API_BASE = "https://ecr.example.com"
NOTIFY_URL = "https://ecr.example.com/fhir/receive-notification"


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast offline unit tests")
    config.addinivalue_line("markers", "integration: mock-based flow tests")
    config.addinivalue_line("markers", "quality: property-based checks")


# ---------------------------------------------------------------------------
# Key material
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def private_key_file(tmp_path: Path, rsa_private_key: rsa.RSAPrivateKey) -> Path:
    """A real PKCS#8 PEM private key on disk."""
    path = tmp_path / "private.pem"
    path.write_bytes(
        rsa_private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return path


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture
def make_settings(private_key_file: Path) -> Callable[..., Settings]:
    """Factory for complete Settings; keyword overrides replace defaults."""

    def _make(**overrides: object) -> Settings:
        values: dict[str, object] = {
            "auth_mode": "CLIENT_SECRET_POST",
            "client_id": "fhir-client",
            "client_secret": "fhir-secret",
            "token_url": TOKEN_URL,
            "kid": "key-1",
            "private_key_path": str(private_key_file),
            "fhir_base": FHIR_BASE,
            "start_date": "2025-02-25",
            "end_date": "2025-02-27",
            "date_field": "date",
            "ecrnow_token_url": ECR_TOKEN_URL,
            "ecrnow_client_id": "ecr-client",
            "ecrnow_client_secret": "ecr-secret",
            "ecrnow_api_base": ECR_API_BASE,
            "notify_url": NOTIFY_URL,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


# ---------------------------------------------------------------------------
# FHIR resource factories
# ---------------------------------------------------------------------------

def encounter(encounter_id: str, patient_id: str | None = None) -> dict:
    resource: dict = {"resourceType": "Encounter", "id": encounter_id, "status": "finished"}
    if patient_id:
        resource["subject"] = {"reference": f"Patient/{patient_id}"}
    return resource


def condition(condition_id: str, encounter_id: str | None = None) -> dict:
    resource: dict = {
        "resourceType": "Condition",
        "id": condition_id,
        "code": {"coding": [{"system": "http://snomed.info/sct", "code": "363346000"}]},
    }
    if encounter_id:
        resource["encounter"] = {"reference": f"Encounter/{encounter_id}"}
    return resource


def search_bundle(resources: list[dict], next_url: str | None = None) -> dict:
    bundle: dict = {
        "resourceType": "Bundle",
        "type": "searchset",
        "entry": [{"resource": r} for r in resources],
    }
    if next_url:
        bundle["link"] = [
            {"relation": "self", "url": "ignored"},
            {"relation": "next", "url": next_url},
        ]
    return bundle


@pytest.fixture
def make_encounter() -> Callable[..., dict]:
    return encounter


@pytest.fixture
def make_condition() -> Callable[..., dict]:
    return condition


@pytest.fixture
def make_bundle() -> Callable[..., dict]:
    return search_bundle


@pytest.fixture
def sequential_ids() -> Callable[[], str]:
    """Deterministic id factory: id-1, id-2, ..."""
    counter = iter(range(1, 1_000_000))
    return lambda: f"id-{next(counter)}"

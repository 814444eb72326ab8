"""Run configuration, read once from the environment and then immutable."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError


DEFAULT_SUBSCRIPTION_URL = "http://ecr.drajer.com/secure/fhir-r4/fhir/Subscription/encounter-end"
DEFAULT_TOPIC_CANONICAL = "http://hl7.org/fhir/us/medmorph/SubscriptionTopic/encounter-end"

# Settings field -> environment variable, for error messages and from_env().
ENV_NAMES: dict[str, str] = {
    "auth_mode":            "AUTH_MODE",
    "client_id":            "CLIENT_ID",
    "client_secret":        "CLIENT_SECRET",
    "token_url":            "TOKEN_URL",
    "scope":                "SCOPE",
    "kid":                  "KID",
    "private_key_path":     "PRIVATE_KEY_PATH",
    "require_aud":          "REQUIRE_AUD",
    "aud":                  "AUD",
    "fhir_base":            "FHIR_BASE",
    "start_date":           "START_DATE",
    "end_date":             "END_DATE",
    "date_field":           "DATE_FIELD",
    "codes_csv":            "CODES_CSV",
    "use_post_search":      "USE_POST_SEARCH",
    "include_patient":      "INCLUDE_PATIENT",
    "patient_id":           "PATIENT_ID",
    "encounter_status":     "ENCOUNTER_STATUS",
    "page_size":            "PAGE_SIZE",
    "ecrnow_token_url":     "ECRNOW_TOKEN_URL",
    "ecrnow_client_id":     "ECRNOW_CLIENT_ID",
    "ecrnow_client_secret": "ECRNOW_CLIENT_SECRET",
    "ecrnow_user_id":       "ECRNOW_USER_ID",
    "ecrnow_api_base":      "ECRNOW_API_BASE",
    "flow_mode":            "FLOW_MODE",
    "validation_mode":      "VALIDATION_MODE",
    "throttle_context":     "THROTTLE_CONTEXT",
    "notify_url":           "RECEIVE_NOTIFICATION_URL",
    "subscription_url":     "SUBSCRIPTION_URL",
    "topic_canonical":      "SUBSCRIPTION_TOPIC",
}

_FLAGS = {"require_aud", "use_post_search", "include_patient"}


class Settings(BaseModel):
    """Every knob of one run. Build with Settings(...) in code or Settings.from_env()."""

    model_config = ConfigDict(frozen=True)

    # FHIR OAuth
    auth_mode: str = "SOF_BACKEND"
    client_id: str | None = None
    client_secret: str | None = None
    token_url: str | None = None
    scope: str = "system/*.read"
    kid: str | None = None
    private_key_path: str | None = None
    require_aud: bool = True
    aud: str | None = None

    # FHIR server / search
    fhir_base: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    date_field: str = "recorded-date"
    codes_csv: str = ""
    use_post_search: bool = False
    include_patient: bool = True
    patient_id: str | None = None
    encounter_status: str | None = None
    page_size: int = Field(default=100, gt=0)

    # eCRNow auth & API
    ecrnow_token_url: str | None = None
    ecrnow_client_id: str | None = None
    ecrnow_client_secret: str | None = None
    ecrnow_user_id: str | None = None
    ecrnow_api_base: str = "http://localhost:8081"

    # Flow selection and launchPatient pass-through
    flow_mode: Literal["launch", "notify"] = "notify"
    validation_mode: str = "false"
    throttle_context: str = "1"

    # Notification delivery
    notify_url: str | None = None
    subscription_url: str = DEFAULT_SUBSCRIPTION_URL
    topic_canonical: str = DEFAULT_TOPIC_CANONICAL

    @field_validator("auth_mode")
    @classmethod
    def _upper_mode(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("flow_mode", mode="before")
    @classmethod
    def _lower_flow(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @property
    def audience(self) -> str | None:
        """Audience for the token request and client assertion; defaults to the token URL."""
        return self.aud or self.token_url

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build Settings from environment variables (os.environ by default).

        Flags are true only when the variable is the string 'true' (any case).
        CANCER_CODES takes precedence over CODES_CSV.

        Raises:
            ConfigurationError: if a value cannot be parsed (e.g. FLOW_MODE=other).
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for field, var in ENV_NAMES.items():
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            values[field] = _parse_flag(raw) if field in _FLAGS else raw

        codes = env.get("CANCER_CODES") or env.get("CODES_CSV")
        if codes:
            values["codes_csv"] = codes

        try:
            return cls(**values)
        except ValidationError as exc:
            fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
            names = [ENV_NAMES.get(f, f) for f in fields]
            raise ConfigurationError(
                f"Invalid configuration for {', '.join(names)}: {exc}", missing=()
            ) from exc

    def missing(self, *fields: str) -> list[str]:
        """Return the env-var names of the given fields that are unset or blank."""
        absent = []
        for field in fields:
            value = getattr(self, field)
            if value is None or (isinstance(value, str) and not value.strip()):
                absent.append(ENV_NAMES.get(field, field))
        return absent

    def require(self, *fields: str) -> None:
        """Raise ConfigurationError naming every blank field among `fields`."""
        absent = self.missing(*fields)
        if absent:
            raise ConfigurationError(missing=absent)


def _parse_flag(raw: str) -> bool:
    return raw.strip().lower() == "true"

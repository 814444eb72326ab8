"""FHIR Subscriptions Backport notification Bundle carrying one Encounter.

The Bundle follows the backport-subscription-notification profile:
  entry[0]  Parameters (backport-subscriptionstatus) describing the event
  entry[1]  the Encounter itself
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Literal

import requests
from pydantic import BaseModel

from ..config import DEFAULT_SUBSCRIPTION_URL, DEFAULT_TOPIC_CANONICAL
from ..errors import RequestTimeoutError
from .fhir_client import FHIR_JSON


logger = logging.getLogger(__name__)

NOTIFICATION_PROFILE = (
    "http://hl7.org/fhir/uv/subscriptions-backport/StructureDefinition/backport-subscription-notification"
)
STATUS_PROFILE = (
    "http://hl7.org/fhir/uv/subscriptions-backport/StructureDefinition/backport-subscriptionstatus"
)
SUBMIT_TIMEOUT = 30.0


class SubmitAuth(BaseModel):
    """Authorization for the receive-notification endpoint.

    'bearer' sends `Bearer <token>`; 'basic' sends `token` verbatim
    (a ready-made `Basic ...` value); 'none' sends nothing.
    """

    type: Literal["bearer", "basic", "none"] = "none"
    token: str = ""


def build_notification_bundle(
    encounter: dict,
    subscription_url: str = DEFAULT_SUBSCRIPTION_URL,
    topic_canonical: str = DEFAULT_TOPIC_CANONICAL,
    events_since_start: int = 1,
    events_in_notification: int = 1,
    id_factory: Callable[[], str] | None = None,
) -> dict:
    """Wrap `encounter` in an event-notification Bundle of type 'history'.

    Args:
        encounter: A FHIR Encounter dict. Its id addresses entry[1]; a missing id
            becomes 'Encounter/unknown'.
        subscription_url: Reference placed in the 'subscription' parameter.
        topic_canonical: Canonical URL of the SubscriptionTopic.
        events_since_start: events-since-subscription-start counter.
        events_in_notification: events-in-notification counter.
        id_factory: Source of the Bundle and Parameters ids. Defaults to uuid4.

    Returns:
        The Bundle dict. Timestamps and generated ids differ per call.
    """
    new_id = id_factory or _uuid
    now_iso = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    params_id = new_id()

    status: dict[str, Any] = {
        "resourceType": "Parameters",
        "id": params_id,
        "meta": {"lastUpdated": now_iso, "profile": [STATUS_PROFILE]},
        "parameter": [
            {"name": "subscription", "valueReference": {"reference": subscription_url}},
            {"name": "topic", "valueCanonical": topic_canonical},
            {"name": "type", "valueCode": "event-notification"},
            {"name": "status", "valueCode": "active"},
            {"name": "events-since-subscription-start", "valueUnsignedInt": int(events_since_start)},
            {"name": "events-in-notification", "valueUnsignedInt": int(events_in_notification)},
        ],
    }

    return {
        "resourceType": "Bundle",
        "id": new_id(),
        "meta": {"lastUpdated": now_iso, "profile": [NOTIFICATION_PROFILE]},
        "type": "history",
        "timestamp": now_iso,
        "entry": [
            {
                "fullUrl": f"urn:uuid:{params_id}",
                "resource": status,
                "request": {"method": "GET", "url": f"{subscription_url}/$status"},
                "response": {"status": "200"},
            },
            {
                "fullUrl": encounter_full_url(encounter),
                "resource": encounter,
            },
        ],
    }


def encounter_full_url(encounter: dict) -> str:
    encounter_id = str(encounter.get("id") or "unknown")
    if encounter_id.startswith("Encounter/"):
        return encounter_id
    return f"Encounter/{encounter_id}"


def submit_encounter(
    url: str,
    encounter: dict,
    auth: SubmitAuth | None = None,
    session: requests.Session | None = None,
    id_factory: Callable[[], str] | None = None,
    **bundle_options: Any,
) -> dict | str:
    """POST a notification Bundle for `encounter` to a receive-notification endpoint.

    Returns:
        The decoded JSON response, an empty dict for an empty body, or the raw
        text of a non-JSON acknowledgement.
    """
    new_id = id_factory or _uuid
    bundle = build_notification_bundle(encounter, id_factory=new_id, **bundle_options)

    headers = {
        "Content-Type": FHIR_JSON,
        "Accept": FHIR_JSON,
        "X-Request-ID": new_id(),
    }
    auth = auth or SubmitAuth()
    if auth.type == "bearer":
        headers["Authorization"] = f"Bearer {auth.token}"
    elif auth.type == "basic":
        headers["Authorization"] = auth.token

    http = session or requests.Session()
    logger.debug("POST %s (notification for %s)", url, bundle["entry"][1]["fullUrl"])
    try:
        response = http.post(url, json=bundle, headers=headers, timeout=SUBMIT_TIMEOUT)
    except requests.Timeout as exc:
        raise RequestTimeoutError(url, SUBMIT_TIMEOUT) from exc
    response.raise_for_status()
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return response.text


def _uuid() -> str:
    return str(uuid.uuid4())

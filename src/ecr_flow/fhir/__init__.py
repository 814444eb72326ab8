from .encounter_resolver import EncounterResolver, build_code_param
from .fhir_client import FHIRClient
from .notification_bundle import SubmitAuth, build_notification_bundle, submit_encounter

__all__ = [
    "EncounterResolver",
    "FHIRClient",
    "SubmitAuth",
    "build_code_param",
    "build_notification_bundle",
    "submit_encounter",
]

"""Flow selection: FLOW_MODE=launch or FLOW_MODE=notify."""

from __future__ import annotations

from collections.abc import Callable

import requests

from ..config import Settings
from ..models import FlowResult
from .base import BaseFlow
from .launch import LaunchFlow, patient_id_from_encounter
from .notify import NotifyFlow

FLOWS: dict[str, type[BaseFlow]] = {
    "launch": LaunchFlow,
    "notify": NotifyFlow,
}


def run_flow(
    settings: Settings,
    session: requests.Session | None = None,
    id_factory: Callable[[], str] | None = None,
) -> FlowResult:
    """Build the flow named by settings.flow_mode and run it once."""
    flow = FLOWS[settings.flow_mode](settings, session=session, id_factory=id_factory)
    return flow.run()


__all__ = ["BaseFlow", "FLOWS", "LaunchFlow", "NotifyFlow", "patient_id_from_encounter", "run_flow"]

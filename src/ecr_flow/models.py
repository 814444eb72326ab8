"""Pydantic models for flow outcomes."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class FlowResult(BaseModel):
    """What one flow run did with the Encounters it resolved."""

    flow: Literal["launch", "notify"]
    encounters_found: int = Field(default=0, description="Encounters returned by the resolver")
    submitted: list[str] = Field(default_factory=list, description="Encounter ids accepted by eCRNow")
    skipped: list[str | None] = Field(default_factory=list, description="Encounter ids lacking a usable id or patient")
    failed: list[str] = Field(default_factory=list, description="Encounter ids whose submission raised")

    def summary(self) -> str:
        return (
            f"{self.flow}: {self.encounters_found} found, {len(self.submitted)} submitted, "
            f"{len(self.skipped)} skipped, {len(self.failed)} failed"
        )

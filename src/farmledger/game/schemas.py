"""Game snapshot payload and result shapes.

The game state is an opaque JSON tree at this boundary: only its shape is
checked (state and camera are objects, plots is a sequence). Contents are
stored and returned untouched.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from farmledger.errors import MalformedPayload


class SnapshotPayload(BaseModel):
    """What a client hands to ``save``. Accepts the legacy camelCase keys too."""

    state: dict[str, Any] = Field(validation_alias=AliasChoices("state", "gameState"))
    plots: list[Any]
    camera: dict[str, Any]
    label: str | None = Field(default=None, max_length=100, validation_alias=AliasChoices("label", "saveName"))
    is_auto_save: bool = Field(default=True, validation_alias=AliasChoices("is_auto_save", "isAutoSave"))

    @field_validator("plots", mode="before")
    @classmethod
    def _plots_must_be_ordered(cls, value: Any) -> Any:
        if isinstance(value, (set, frozenset, dict)):
            msg = "plots must be an ordered sequence"
            raise ValueError(msg)
        return value


class Snapshot(BaseModel):
    """The current saved game of a user."""

    state: dict[str, Any]
    plots: list[Any]
    camera: dict[str, Any]
    label: str
    is_auto_save: bool
    updated_at: datetime

    @property
    def sustainability_metrics(self) -> dict[str, Any]:
        return self.state.get("sustainabilityMetrics") or {}

    @property
    def weather(self) -> dict[str, Any]:
        return self.state.get("weather") or {}

    @property
    def season(self) -> dict[str, Any]:
        return self.state.get("season") or {}


def _is_json_faithful(value: Any) -> bool:
    """True if the value survives a JSON round trip unchanged."""
    try:
        encoded = json.dumps(value, allow_nan=False)
    except (TypeError, ValueError):
        return False
    return json.loads(encoded) == value


def parse_payload(payload: SnapshotPayload | dict[str, Any]) -> SnapshotPayload:
    """Validate a snapshot payload.

    Raises:
        MalformedPayload: If a part has the wrong shape or is not plain JSON data.
    """
    if isinstance(payload, SnapshotPayload):
        parsed = payload
    else:
        if not isinstance(payload, dict):
            msg = "Snapshot payload must be an object"
            raise MalformedPayload(msg)
        try:
            parsed = SnapshotPayload.model_validate(payload)
        except ValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            msg = "Snapshot payload failed validation"
            raise MalformedPayload(msg, details={"fields": fields}) from e

    for name in ("state", "plots", "camera"):
        if not _is_json_faithful(getattr(parsed, name)):
            msg = f"Snapshot {name} must contain only JSON data"
            raise MalformedPayload(msg, details={"fields": [name]})
    return parsed

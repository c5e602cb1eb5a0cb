"""Typed shapes of the JSON exchanged with the Clubhouse API and returned by tools.

These TypedDicts document the shape of dicts; runtime values are plain dicts.
"""

from __future__ import annotations

from typing import TypedDict


class LabelParams(TypedDict):
    """Label-creation parameter; the service creates unknown labels by name."""

    name: str


class StoryUpdatePayload(TypedDict, total=False):
    """Body of PUT /stories/{id}. Omitted keys are left unchanged server-side."""

    name: str
    description: str
    story_type: str
    estimate: int
    epic_id: int
    labels: list[LabelParams]
    workflow_state_id: int


class StoryCreatePayload(TypedDict, total=False):
    """Body of POST /stories."""

    name: str
    description: str
    project_id: int
    story_type: str
    workflow_state_id: int
    epic_id: int
    labels: list[LabelParams]


class PairRow(TypedDict):
    id: int
    name: str


class OutcomeDict(TypedDict, total=False):
    """SyncOutcome.to_dict() result."""

    ok: bool
    action: str
    status: str
    story_id: int | None
    message: str
    url: str
    payload: dict

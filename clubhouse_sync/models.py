"""
Typed records for remote resources: stories, workflows, and id/name pairs.
"""

from dataclasses import dataclass, field

from clubhouse_sync.exceptions import CliError
from clubhouse_sync.types import PairRow

# Values of an "archived" flag that mean archived. JSON true arrives as a bool,
# some exports carry the string form.
ARCHIVED_TRUE_VALUES = (True, "true")


def is_archived(resource):
    """True when the resource's archived flag is set (bool or "true" sentinel)."""
    flag = resource.get("archived")
    if isinstance(flag, str):
        return flag.strip().lower() == "true"
    return flag is True


def _require(resource, key, kind):
    if key not in resource or resource[key] is None:
        raise CliError(f"[ERROR] Malformed {kind} resource: missing '{key}'.")
    return resource[key]


def _as_int(value, key, kind):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise CliError(f"[ERROR] Malformed {kind} resource: '{key}' is not an integer.") from None


@dataclass(frozen=True)
class IdNamePair:
    """A resource reduced to its identifier and display name."""

    id: int
    name: str

    @classmethod
    def from_resource(cls, resource, id_field="id", name_field="name"):
        return cls(
            id=_as_int(_require(resource, id_field, "reference"), id_field, "reference"),
            name=str(_require(resource, name_field, "reference")),
        )

    def label(self):
        """Render as "id: name" for documents and prompts."""
        return f"{self.id}: {self.name}"

    def to_dict(self) -> PairRow:
        return {"id": self.id, "name": self.name}


def pairs_from_resources(resources, id_field="id", name_field="name"):
    """Build IdNamePairs from raw resources, dropping archived ones. Order is kept."""
    return [
        IdNamePair.from_resource(r, id_field, name_field)
        for r in resources
        if not is_archived(r)
    ]


def find_by_id(pairs, item_id):
    """Return the first pair with this id, or None."""
    for pair in pairs:
        if pair.id == item_id:
            return pair
    return None


def find_by_name(pairs, name):
    """Return the first pair whose name matches exactly, or None."""
    for pair in pairs:
        if pair.name == name:
            return pair
    return None


@dataclass(frozen=True)
class WorkflowState:
    id: int
    name: str

    @classmethod
    def from_resource(cls, resource):
        pair = IdNamePair.from_resource(resource)
        return cls(id=pair.id, name=pair.name)


@dataclass(frozen=True)
class Workflow:
    """A workflow and its ordered states."""

    id: int
    name: str
    states: tuple[WorkflowState, ...] = ()

    @classmethod
    def from_resource(cls, resource):
        pair = IdNamePair.from_resource(resource)
        states = tuple(WorkflowState.from_resource(s) for s in resource.get("states") or [])
        return cls(id=pair.id, name=pair.name, states=states)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "states": [{"id": s.id, "name": s.name} for s in self.states],
        }


@dataclass(frozen=True)
class Story:
    """The authoritative remote story, as returned by the service."""

    id: int
    name: str
    story_type: str
    project_id: int
    workflow_state_id: int
    updated_at: str
    description: str = ""
    estimate: int | None = None
    epic_id: int | None = None
    labels: tuple[str, ...] = field(default_factory=tuple)
    app_url: str = ""

    @classmethod
    def from_resource(cls, resource):
        kind = "story"
        estimate = resource.get("estimate")
        epic_id = resource.get("epic_id")
        labels = tuple(
            label["name"] if isinstance(label, dict) else str(label)
            for label in resource.get("labels") or []
        )
        return cls(
            id=_as_int(_require(resource, "id", kind), "id", kind),
            name=str(_require(resource, "name", kind)),
            story_type=str(_require(resource, "story_type", kind)),
            project_id=_as_int(_require(resource, "project_id", kind), "project_id", kind),
            workflow_state_id=_as_int(
                _require(resource, "workflow_state_id", kind), "workflow_state_id", kind
            ),
            updated_at=str(_require(resource, "updated_at", kind)),
            description=resource.get("description") or "",
            estimate=None if estimate is None else _as_int(estimate, "estimate", kind),
            epic_id=None if epic_id is None else _as_int(epic_id, "epic_id", kind),
            labels=labels,
            app_url=resource.get("app_url") or "",
        )

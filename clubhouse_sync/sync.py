"""
Sync engine: load, save, refresh, and create stories through an editing surface.

Saves are guarded by the document's LastUpdated token. If the remote story
has a newer token than the one captured when the document was last decoded,
the save is refused and nothing is sent; there is no merging.

Operations are synchronous and run one at a time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from clubhouse_sync import config
from clubhouse_sync.codec import (
    build_create_payload,
    creation_description,
    decode_story,
    encode_document,
    parse_document,
)
from clubhouse_sync.exceptions import CliError, ResolutionError
from clubhouse_sync.models import Story, find_by_id, find_by_name
from clubhouse_sync.references import ReferenceCache, WorkflowStateResolver
from clubhouse_sync.types import OutcomeDict

LOADED = "loaded"
SAVED = "saved"
UNCHANGED = "unchanged"
CONFLICT = "conflict"
UNSAVED_EDITS = "unsaved_edits"
DRY_RUN = "dry_run"
CREATED = "created"

REFUSALS = frozenset({CONFLICT, UNSAVED_EDITS})

_LABEL_RE = re.compile(r"^\s*(\d+)(?::.*)?$")


class SyncState(Enum):
    UNLOADED = "unloaded"
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class SyncOutcome:
    """Result of one engine operation. Refusals are outcomes, not exceptions."""

    action: str
    status: str
    story_id: int | None = None
    message: str = ""
    payload: dict[str, Any] | None = None
    url: str | None = None

    @property
    def refused(self) -> bool:
        return self.status in REFUSALS

    @property
    def ok(self) -> bool:
        return not self.refused

    def to_dict(self) -> OutcomeDict:
        out: OutcomeDict = {
            "ok": self.ok,
            "action": self.action,
            "status": self.status,
            "story_id": self.story_id,
            "message": self.message,
        }
        if self.url:
            out["url"] = self.url
        if self.payload is not None:
            out["payload"] = self.payload
        return out


def is_newer(remote_token: str, local_token: str) -> bool:
    """Token order is plain string order (ISO-8601 timestamps sort correctly)."""
    return remote_token > local_token


def _match_reference(pairs, value):
    """Find a pair by id, by an "id: name" label, or by exact name."""
    if isinstance(value, int):
        return find_by_id(pairs, value)
    m = _LABEL_RE.match(str(value))
    if m:
        return find_by_id(pairs, int(m.group(1)))
    return find_by_name(pairs, str(value))


class SyncEngine:
    """Keeps one editing surface in step with one remote story."""

    def __init__(self, client, surface, cache: ReferenceCache | None = None):
        self.client = client
        self.surface = surface
        self.cache = cache if cache is not None else ReferenceCache(client)
        self.resolver = WorkflowStateResolver(self.cache)
        self._saving = False
        self._conflict = False

    # -------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------

    def _has_document(self) -> bool:
        try:
            return bool(self.surface.get_text().strip())
        except CliError:
            return False

    @property
    def state(self) -> SyncState:
        if self._saving:
            return SyncState.SAVING
        if not self._has_document():
            return SyncState.UNLOADED
        if self.surface.modified:
            return SyncState.CONFLICT if self._conflict else SyncState.DIRTY
        return SyncState.CLEAN

    def _fetch(self, story_id: int) -> Story:
        return Story.from_resource(self.client.get_story(story_id))

    def _show(self, story: Story) -> None:
        text = decode_story(story, self.cache, self.resolver)
        self.surface.replace_text(text)
        self._conflict = False

    def document_story_id(self) -> int:
        return parse_document(self.surface.get_text()).story_id

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------

    def load(self, story_id: int) -> SyncOutcome:
        """Fetch a story and replace the surface's text with its document."""
        story = self._fetch(story_id)
        self._show(story)
        return SyncOutcome(
            "load", LOADED, story.id, f"Loaded story {story.id}: {story.name}", url=story.app_url
        )

    def refresh(self, force: bool = False, story_id: int | None = None) -> SyncOutcome:
        """Reload from remote; refuses to discard local edits unless forced."""
        if story_id is None:
            story_id = self.document_story_id()
        if self.surface.modified and not force:
            message = (
                f"Story {story_id} has unsaved local edits; refresh would discard them. "
                "Save first, or refresh with force."
            )
            self.surface.notify(message)
            return SyncOutcome("refresh", UNSAVED_EDITS, story_id, message)
        outcome = self.load(story_id)
        return SyncOutcome("refresh", LOADED, outcome.story_id, outcome.message, url=outcome.url)

    def save(self) -> SyncOutcome:
        """Push local edits, unless the remote story changed since the last decode."""
        text = self.surface.get_text()
        doc = parse_document(text)
        story_id = doc.story_id
        if not self.surface.modified:
            outcome = self.load(story_id)
            return SyncOutcome(
                "save", UNCHANGED, story_id, "No local changes; reloaded.", url=outcome.url
            )

        self._saving = True
        try:
            remote = self._fetch(story_id)
            if is_newer(remote.updated_at, doc.last_updated):
                self._conflict = True
                message = (
                    f"Story {story_id} was updated remotely at {remote.updated_at} "
                    f"(document has {doc.last_updated or 'no token'}). Save refused; "
                    "review and refresh with force to take the remote version."
                )
                self.surface.notify(message)
                return SyncOutcome("save", CONFLICT, story_id, message, url=remote.app_url)

            payload = encode_document(text, self.cache, self.resolver)
            response = self.client.update_story(story_id, payload)
            if response is None:
                return SyncOutcome(
                    "save", DRY_RUN, story_id, "Dry run: update not sent.", payload=payload
                )
            story = Story.from_resource(response)
            self._show(story)
            return SyncOutcome(
                "save",
                SAVED,
                story.id,
                f"Saved story {story.id}",
                payload=payload,
                url=story.app_url,
            )
        finally:
            self._saving = False

    def _choose(self, kind, given, prompt, optional=False):
        pairs = self.cache.get(kind)
        if given is not None and given != "":
            pair = _match_reference(pairs, given)
            if pair is None:
                raise ResolutionError(kind, given)
            return pair
        if not pairs:
            if optional:
                return None
            raise CliError(f"[ERROR] No {kind}s available to choose from.")
        choice = self.surface.prompt_choice(prompt, [p.name for p in pairs], allow_none=optional)
        if choice is None:
            return None
        return find_by_name(pairs, choice)

    def _choose_state(self, given):
        if given:
            state = self.resolver.state_by_name(given)
            if state is None:
                raise ResolutionError("workflow state", given)
            return state.id
        names = [s.name for s in self.resolver.states()]
        if not names:
            return None
        choice = self.surface.prompt_choice("Workflow state", names, allow_none=True)
        if choice is None:
            return None
        return self.resolver.state_by_name(choice).id

    def create(
        self,
        source,
        *,
        project=None,
        epic=None,
        story_type: str | None = None,
        state: str | None = None,
        labels: list[str] | None = None,
    ) -> SyncOutcome:
        """Create a story from a creation source and record its URL there."""
        linked = source.linked_story_id()
        if linked:
            raise CliError(f"[ERROR] '{source.title()}' is already linked to story {linked}.")
        name = source.title()
        description = creation_description(source.section_text())

        project_pair = self._choose("project", project, "Project")
        epic_pair = self._choose("epic", epic, "Epic", optional=True)
        if not story_type:
            choice = self.surface.prompt_choice(
                "Story type", sorted(config.VALID_STORY_TYPES), allow_none=True
            )
            story_type = choice or config.DEFAULT_STORY_TYPE
        payload = build_create_payload(
            name=name,
            description=description,
            project_id=project_pair.id,
            story_type=story_type,
            workflow_state_id=self._choose_state(state),
            epic_id=epic_pair.id if epic_pair is not None else None,
            labels=labels,
        )

        response = self.client.create_story(payload)
        if response is None:
            return SyncOutcome("create", DRY_RUN, None, "Dry run: story not created.", payload)
        story_id = response.get("id")
        url = response.get("app_url") or ""
        source.record_created(story_id, url)
        return SyncOutcome("create", CREATED, story_id, f"Created story {story_id}", payload, url)

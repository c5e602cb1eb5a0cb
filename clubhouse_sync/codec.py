"""
Story codec: remote Story <-> local story document text.

A document looks like::

    #+TITLE: 42: Fix bug
    :PROPERTIES:
    :type: story
    :clubhouse-id: 42
    ...
    :LastUpdated: 2023-01-01T00:00:00Z
    :END:

    #+begin_src markdown
      description, indented two spaces
    #+end_src

Decoding indents the description; encoding does not remove the indent.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from clubhouse_sync import config
from clubhouse_sync.exceptions import CliError, ResolutionError
from clubhouse_sync.models import Story
from clubhouse_sync.orgmarkup import parse_property_line, to_markdown
from clubhouse_sync.types import LabelParams, StoryCreatePayload, StoryUpdatePayload

# Metadata block keys, in rendering order.
TYPE_KEY = "type"
ID_KEY = "clubhouse-id"
URL_KEY = "url"
PROJECT_KEY = "project"
STORY_TYPE_KEY = "story-type"
ESTIMATE_KEY = "estimate"
EPIC_KEY = "epic"
STATE_KEY = "state"
LABELS_KEY = "labels"
UPDATED_KEY = "LastUpdated"

PROPERTY_ORDER = (
    TYPE_KEY,
    ID_KEY,
    URL_KEY,
    PROJECT_KEY,
    STORY_TYPE_KEY,
    ESTIMATE_KEY,
    EPIC_KEY,
    STATE_KEY,
    LABELS_KEY,
    UPDATED_KEY,
)

QUOTE_PREFIX = "  "

_TITLE_RE = re.compile(r"^#\+TITLE:\s*(.*?)\s*$", re.IGNORECASE)
_TITLE_ID_RE = re.compile(r"^\s*\d+:\s*")
_REF_ID_RE = re.compile(r"^\s*(\d+)(?::\s*(.*))?$")
_BEGIN_RE = re.compile(r"^\s*#\+begin_src(?:\s+\S+)?\s*$", re.IGNORECASE)
_END_RE = re.compile(r"^\s*#\+end_src\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class StoryDocument:
    """The parsed pieces of a story document."""

    title: str
    properties: dict[str, str] = field(default_factory=dict)
    description: str = ""

    @property
    def name(self) -> str:
        return _TITLE_ID_RE.sub("", self.title, count=1)

    @property
    def story_id(self) -> int:
        raw = self.properties.get(ID_KEY, "")
        try:
            return int(raw)
        except ValueError:
            raise CliError(f"[ERROR] Document has no valid :{ID_KEY}: (got {raw!r}).") from None

    @property
    def last_updated(self) -> str:
        return self.properties.get(UPDATED_KEY, "")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def quote_description(description: str) -> str:
    """Indent each line two spaces; whitespace-only lines become empty."""
    return "\n".join(
        QUOTE_PREFIX + line if line.strip() else "" for line in description.split("\n")
    )


def render_document(title: str, properties: dict[str, str], description: str) -> str:
    lines = [f"#+TITLE: {title}", ":PROPERTIES:"]
    for key in PROPERTY_ORDER:
        lines.append(f":{key}: {properties.get(key, '')}".rstrip())
    lines.append(":END:")
    lines.append("")
    lines.append(f"#+begin_src {config.DESCRIPTION_LANGUAGE}")
    lines.append(quote_description(description))
    lines.append("#+end_src")
    return "\n".join(lines) + "\n"


def decode_story(story: Story, cache, resolver) -> str:
    """Render a Story as document text, resolving ids to readable names."""
    project = cache.by_id("project", story.project_id)
    if project is None:
        raise ResolutionError("project", story.project_id)
    epic = ""
    if story.epic_id is not None:
        pair = cache.by_id("epic", story.epic_id)
        epic = pair.label() if pair is not None else str(story.epic_id)
    state = resolver.state_by_id(story.workflow_state_id)
    properties = {
        TYPE_KEY: config.DOCUMENT_TYPE_TAG,
        ID_KEY: str(story.id),
        URL_KEY: story.app_url,
        PROJECT_KEY: project.label(),
        STORY_TYPE_KEY: story.story_type,
        ESTIMATE_KEY: "" if story.estimate is None else str(story.estimate),
        EPIC_KEY: epic,
        STATE_KEY: state.name if state is not None else "",
        LABELS_KEY: ", ".join(story.labels),
        UPDATED_KEY: story.updated_at,
    }
    return render_document(f"{story.id}: {story.name}", properties, story.description)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def extract_description(lines: list[str], start: int = 0) -> str:
    """Text between the src fence and its closing marker, indentation kept."""
    begin = None
    for i in range(start, len(lines)):
        if _BEGIN_RE.match(lines[i]):
            begin = i
            break
    if begin is None:
        raise CliError("[ERROR] Document has no #+begin_src description block.")
    for end in range(len(lines) - 1, begin, -1):
        if _END_RE.match(lines[end]):
            return "\n".join(lines[begin + 1 : end])
    raise CliError("[ERROR] Description block is not closed with #+end_src.")


def parse_document(text: str) -> StoryDocument:
    lines = text.split("\n")
    title = None
    for line in lines:
        m = _TITLE_RE.match(line)
        if m:
            title = m.group(1)
            break
    if title is None:
        raise CliError("[ERROR] Not a story document: no #+TITLE line.")

    try:
        start = next(i for i, line in enumerate(lines) if line.strip() == ":PROPERTIES:")
    except StopIteration:
        raise CliError("[ERROR] Not a story document: no :PROPERTIES: block.") from None
    properties: dict[str, str] = {}
    end = None
    for i in range(start + 1, len(lines)):
        if lines[i].strip().upper() == ":END:":
            end = i
            break
        parsed = parse_property_line(lines[i])
        if parsed:
            properties[parsed[0]] = parsed[1]
    if end is None:
        raise CliError("[ERROR] Metadata block is not closed with :END:.")

    return StoryDocument(
        title=title,
        properties=properties,
        description=extract_description(lines, end + 1),
    )


def parse_story_type(raw: str) -> str:
    value = raw.strip()
    if value not in config.VALID_STORY_TYPES:
        raise CliError(
            f"[ERROR] Invalid story type '{value}'. "
            f"Valid: {', '.join(sorted(config.VALID_STORY_TYPES))}"
        )
    return value


def parse_estimate(raw: str) -> int | None:
    """Empty means "no estimate"; anything else must be a non-negative integer."""
    value = raw.strip()
    if not value:
        return None
    try:
        estimate = int(value)
    except ValueError:
        raise CliError(f"[ERROR] Invalid estimate '{value}'. Use a whole number.") from None
    if estimate < 0:
        raise CliError(f"[ERROR] Invalid estimate '{value}'. Must not be negative.")
    return estimate


def parse_labels(raw: str) -> list[LabelParams]:
    """Split a comma-joined label field into label-creation params."""
    return [{"name": name.strip()} for name in raw.split(",") if name.strip()]


def parse_reference(raw: str, kind: str, cache) -> int | None:
    """Read an "id: name" field; a bare name is resolved through the cache."""
    value = raw.strip()
    if not value:
        return None
    m = _REF_ID_RE.match(value)
    if m:
        return int(m.group(1))
    pair = cache.by_name(kind, value)
    if pair is None:
        raise ResolutionError(kind, value)
    return pair.id


def _resolve_state_id(name: str, resolver) -> int:
    state = resolver.state_by_name(name)
    if state is None:
        known = ", ".join(s.name for s in resolver.states())
        raise ResolutionError(
            "workflow state", name, f"Known states: {known}" if known else ""
        )
    return state.id


def encode_document(text: str, cache, resolver) -> StoryUpdatePayload:
    """Build the partial-update payload for an edited document.

    Empty estimate/epic fields are left out so the service keeps its values.
    An unknown workflow state name raises ResolutionError.
    """
    doc = parse_document(text)
    props = doc.properties
    payload: StoryUpdatePayload = {
        "name": doc.name,
        "description": doc.description,
        "story_type": parse_story_type(props.get(STORY_TYPE_KEY, "")),
    }
    estimate = parse_estimate(props.get(ESTIMATE_KEY, ""))
    if estimate is not None:
        payload["estimate"] = estimate
    epic_id = parse_reference(props.get(EPIC_KEY, ""), "epic", cache)
    if epic_id is not None:
        payload["epic_id"] = epic_id
    payload["labels"] = parse_labels(props.get(LABELS_KEY, ""))
    payload["workflow_state_id"] = _resolve_state_id(props.get(STATE_KEY, ""), resolver)
    return payload


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def creation_description(section_text: str) -> str:
    """Markdown description for a new story, from a user's org section body."""
    return to_markdown(section_text)


def build_create_payload(
    *,
    name: str,
    description: str,
    project_id: int,
    story_type: str,
    workflow_state_id: int | None = None,
    epic_id: int | None = None,
    labels: list[str] | None = None,
) -> StoryCreatePayload:
    name = (name or "").strip()
    if not name:
        raise CliError("[ERROR] Story name cannot be empty.")
    payload: StoryCreatePayload = {
        "name": name,
        "description": description,
        "project_id": project_id,
        "story_type": parse_story_type(story_type),
    }
    if workflow_state_id is not None:
        payload["workflow_state_id"] = workflow_state_id
    if epic_id is not None:
        payload["epic_id"] = epic_id
    if labels:
        payload["labels"] = [{"name": label} for label in labels]
    return payload

"""
Editing surfaces: where a story document lives while the user edits it,
plus the creation sources a new story is written from.

The sync engine only talks to the EditingSurface interface, so it runs the
same against a file on disk, an in-memory buffer, or an MCP session.
"""

from __future__ import annotations

import hashlib
import os
import sys
import tempfile

from clubhouse_sync import config
from clubhouse_sync.exceptions import CliError
from clubhouse_sync.orgmarkup import find_heading, get_property, section_body, set_properties

CREATED_ID_PROPERTY = "clubhouse-id"
CREATED_URL_PROPERTY = "clubhouse-url"


def _digest(text):
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _atomic_write(path, text):
    """Write *text* to *path* via a temp file and rename."""
    directory = os.path.dirname(os.path.abspath(path)) or "."
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".clubhouse_tmp_")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.remove(tmp_path)
        except OSError:
            pass
        raise


# ---------------------------------------------------------------------------
# Editing surfaces
# ---------------------------------------------------------------------------


class EditingSurface:
    """Capabilities the sync engine needs from whatever holds the document."""

    def get_text(self) -> str:
        raise NotImplementedError

    def replace_text(self, text: str) -> None:
        """Replace the whole document and mark it unmodified."""
        raise NotImplementedError

    @property
    def modified(self) -> bool:
        raise NotImplementedError

    def prompt_choice(self, prompt: str, choices: list[str], allow_none: bool = False):
        """Ask the user to pick one of *choices*; None when allowed and skipped."""
        raise NotImplementedError

    def prompt_text(self, prompt: str, default: str = "") -> str:
        raise NotImplementedError

    def notify(self, message: str) -> None:
        raise NotImplementedError


class MemorySurface(EditingSurface):
    """An in-memory document with scripted prompt answers.

    *answers* maps prompt text to the answer to give; unanswered prompts raise
    CliError so nothing blocks waiting for input.
    """

    def __init__(self, text="", answers=None):
        self._text = text
        self._clean_text = text
        self.answers = dict(answers or {})
        self.messages: list[str] = []

    def get_text(self):
        return self._text

    def edit(self, text):
        """Replace the text as a user edit (leaves the surface modified)."""
        self._text = text

    def replace_text(self, text):
        self._text = text
        self._clean_text = text

    @property
    def modified(self):
        return self._text != self._clean_text

    def prompt_choice(self, prompt, choices, allow_none=False):
        if prompt not in self.answers:
            if allow_none:
                return None
            raise CliError(
                f"[ERROR] No answer for prompt '{prompt}'. Choices: {', '.join(choices)}"
            )
        answer = self.answers[prompt]
        if answer is None and allow_none:
            return None
        if answer not in choices:
            raise CliError(f"[ERROR] '{answer}' is not one of: {', '.join(choices)}")
        return answer

    def prompt_text(self, prompt, default=""):
        return self.answers.get(prompt, default)

    def notify(self, message):
        self.messages.append(message)


class FileSurface(EditingSurface):
    """A document file on disk.

    The digest of the last text written by the engine is kept in a sidecar
    file ``.<name>.clubhouse`` next to the document; the document is modified
    when its current digest differs. A document with no sidecar counts as
    modified unless the file does not exist yet.
    """

    def __init__(self, path, *, stream=None):
        self.path = path
        self.stream = stream

    @property
    def sidecar_path(self):
        directory, name = os.path.split(os.path.abspath(self.path))
        return os.path.join(directory, f".{name}.clubhouse")

    def exists(self):
        return os.path.exists(self.path)

    def get_text(self):
        try:
            with open(self.path, encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            raise CliError(f"[ERROR] Document not found: {self.path}") from None

    def replace_text(self, text):
        _atomic_write(self.path, text)
        _atomic_write(self.sidecar_path, _digest(text) + "\n")

    @property
    def modified(self):
        if not self.exists():
            return False
        try:
            with open(self.sidecar_path, encoding="utf-8") as f:
                clean_digest = f.read().strip()
        except FileNotFoundError:
            return True
        return _digest(self.get_text()) != clean_digest

    def _out(self):
        return self.stream or sys.stderr

    def prompt_choice(self, prompt, choices, allow_none=False):
        out = self._out()
        print(f"{prompt}:", file=out)
        if allow_none:
            print("   0) (none)", file=out)
        for i, choice in enumerate(choices, 1):
            print(f"  {i:>2}) {choice}", file=out)
        while True:
            raw = input(f"{prompt} [1-{len(choices)}]: ").strip()
            if not raw and allow_none:
                return None
            if raw in choices:
                return raw
            try:
                index = int(raw)
            except ValueError:
                print("  Please enter a number or one of the names.", file=out)
                continue
            if index == 0 and allow_none:
                return None
            if 1 <= index <= len(choices):
                return choices[index - 1]
            print(f"  Out of range: {index}", file=out)

    def prompt_text(self, prompt, default=""):
        suffix = f" [{default}]" if default else ""
        raw = input(f"{prompt}{suffix}: ").strip()
        return raw or default

    def notify(self, message):
        if not config.RUNTIME_QUIET:
            print(message, file=self._out())


# ---------------------------------------------------------------------------
# Creation sources
# ---------------------------------------------------------------------------


class TextCreationSource:
    """A new story given directly as a title and org-formatted body."""

    def __init__(self, title, body=""):
        self._title = title
        self._body = body
        self.created = None

    def title(self):
        return self._title

    def section_text(self):
        return self._body

    def linked_story_id(self):
        return self.created[0] if self.created else None

    def record_created(self, story_id, url):
        self.created = (story_id, url)


class OrgHeadingSource:
    """A heading in an org file; the story is written from its section.

    After creation the story id and URL are stored in the heading's
    property drawer, which also marks the heading as already linked.
    """

    def __init__(self, path, heading=None, log_marker=None):
        self.path = path
        self.heading = heading
        self.log_marker = log_marker if log_marker is not None else config.LOG_MARKER

    def _text(self):
        try:
            with open(self.path, encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            raise CliError(f"[ERROR] Org file not found: {self.path}") from None

    def _find(self, text):
        found = find_heading(text, self.heading)
        if found is None:
            what = f"'{self.heading}'" if self.heading else "any heading"
            raise CliError(f"[ERROR] {self.path} has no {what}.")
        return found

    def title(self):
        return self._find(self._text())[2]

    def section_text(self):
        text = self._text()
        title = self._find(text)[2]
        return section_body(text, title, self.log_marker) or ""

    def linked_story_id(self):
        text = self._text()
        return get_property(text, CREATED_ID_PROPERTY, self._find(text)[2]) or None

    def record_created(self, story_id, url):
        text = self._text()
        title = self._find(text)[2]
        updated = set_properties(
            text,
            {CREATED_ID_PROPERTY: str(story_id), CREATED_URL_PROPERTY: url},
            title,
        )
        _atomic_write(self.path, updated)

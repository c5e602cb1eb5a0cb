"""Tests for surface.py: editing surfaces and creation sources."""

import io
import os

import pytest

from clubhouse_sync import config
from clubhouse_sync.exceptions import CliError
from clubhouse_sync.orgmarkup import to_markdown
from clubhouse_sync.surface import (
    FileSurface,
    MemorySurface,
    OrgHeadingSource,
    TextCreationSource,
)

ORG = """\
* Add search
  Users want /search/.
  :LOGBOOK:
  - State "DONE" from "TODO"
  :END:
* Linked
  :PROPERTIES:
  :clubhouse-id: 77
  :END:
  Already there.
"""


class TestMemorySurface:
    def test_edit_marks_modified(self):
        surface = MemorySurface("a")
        assert surface.modified is False
        surface.edit("b")
        assert surface.modified is True
        surface.edit("a")
        assert surface.modified is False

    def test_replace_marks_clean(self):
        surface = MemorySurface()
        surface.edit("x")
        surface.replace_text("y")
        assert surface.get_text() == "y"
        assert surface.modified is False

    def test_prompt_answers(self):
        surface = MemorySurface(answers={"Project": "Backend"})
        assert surface.prompt_choice("Project", ["Backend", "Frontend"]) == "Backend"

    def test_unanswered_prompt(self):
        surface = MemorySurface()
        assert surface.prompt_choice("Epic", ["Launch"], allow_none=True) is None
        with pytest.raises(CliError, match="No answer for prompt 'Project'"):
            surface.prompt_choice("Project", ["Backend"])

    def test_answer_not_a_choice(self):
        surface = MemorySurface(answers={"Project": "Nope"})
        with pytest.raises(CliError, match="not one of"):
            surface.prompt_choice("Project", ["Backend"])

    def test_notify_collects(self):
        surface = MemorySurface()
        surface.notify("hello")
        assert surface.messages == ["hello"]


class TestFileSurface:
    def test_new_file(self, tmp_path):
        surface = FileSurface(str(tmp_path / "story.org"))
        assert surface.exists() is False
        assert surface.modified is False
        with pytest.raises(CliError, match="not found"):
            surface.get_text()

    def test_replace_writes_sidecar(self, tmp_path):
        path = tmp_path / "story.org"
        surface = FileSurface(str(path))
        surface.replace_text("text\n")
        assert path.read_text(encoding="utf-8") == "text\n"
        assert os.path.basename(surface.sidecar_path) == ".story.org.clubhouse"
        assert os.path.exists(surface.sidecar_path)
        assert surface.modified is False

    def test_external_edit_is_modified(self, tmp_path):
        path = tmp_path / "story.org"
        surface = FileSurface(str(path))
        surface.replace_text("text\n")
        path.write_text("edited\n", encoding="utf-8")
        assert FileSurface(str(path)).modified is True

    def test_no_sidecar_is_modified(self, tmp_path):
        path = tmp_path / "story.org"
        path.write_text("hand written\n", encoding="utf-8")
        assert FileSurface(str(path)).modified is True

    def test_notify(self, tmp_path, monkeypatch):
        stream = io.StringIO()
        surface = FileSurface(str(tmp_path / "s.org"), stream=stream)
        surface.notify("refused")
        monkeypatch.setattr(config, "RUNTIME_QUIET", True)
        surface.notify("hidden")
        assert stream.getvalue() == "refused\n"

    def test_prompt_by_number_and_name(self, tmp_path, monkeypatch):
        answers = iter(["x", "9", "2", "Backend"])
        monkeypatch.setattr("builtins.input", lambda _prompt: next(answers))
        stream = io.StringIO()
        surface = FileSurface(str(tmp_path / "s.org"), stream=stream)
        assert surface.prompt_choice("Project", ["Backend", "Frontend"]) == "Frontend"
        assert surface.prompt_choice("Project", ["Backend", "Frontend"]) == "Backend"
        out = stream.getvalue()
        assert "Please enter a number" in out
        assert "Out of range: 9" in out

    def test_prompt_skip(self, tmp_path, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda _prompt: "")
        surface = FileSurface(str(tmp_path / "s.org"), stream=io.StringIO())
        assert surface.prompt_choice("Epic", ["Launch"], allow_none=True) is None

    def test_prompt_text_default(self, tmp_path, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda _prompt: "")
        surface = FileSurface(str(tmp_path / "s.org"), stream=io.StringIO())
        assert surface.prompt_text("Name", "fallback") == "fallback"


class TestTextCreationSource:
    def test_records_creation(self):
        source = TextCreationSource("Title", "body")
        assert source.linked_story_id() is None
        source.record_created(5, "https://u")
        assert source.created == (5, "https://u")
        assert source.linked_story_id() == 5


class TestOrgHeadingSource:
    def _write(self, tmp_path, text=ORG):
        path = tmp_path / "notes.org"
        path.write_text(text, encoding="utf-8")
        return path

    def test_title_and_section(self, tmp_path):
        source = OrgHeadingSource(str(self._write(tmp_path)))
        assert source.title() == "Add search"
        assert source.section_text() == "  Users want /search/."

    def test_custom_log_marker(self, tmp_path):
        source = OrgHeadingSource(str(self._write(tmp_path)), log_marker="- State")
        assert ":LOGBOOK:" in source.section_text()

    def test_linked(self, tmp_path):
        path = str(self._write(tmp_path))
        assert OrgHeadingSource(path).linked_story_id() is None
        assert OrgHeadingSource(path, heading="Linked").linked_story_id() == "77"

    def test_record_created(self, tmp_path):
        path = self._write(tmp_path)
        source = OrgHeadingSource(str(path))
        source.record_created(901, "https://app.example.test/story/901")
        text = path.read_text(encoding="utf-8")
        assert text.startswith(
            "* Add search\n"
            "  :PROPERTIES:\n"
            "  :clubhouse-id: 901\n"
            "  :clubhouse-url: https://app.example.test/story/901\n"
            "  :END:\n"
        )
        assert source.linked_story_id() == "901"

    def test_missing_heading(self, tmp_path):
        source = OrgHeadingSource(str(self._write(tmp_path)), heading="Nope")
        with pytest.raises(CliError, match="no 'Nope'"):
            source.title()

    def test_missing_file(self, tmp_path):
        with pytest.raises(CliError, match="not found"):
            OrgHeadingSource(str(tmp_path / "missing.org")).title()

    def test_indented_bullets_convert_to_list(self, tmp_path):
        path = self._write(tmp_path, "* Story\n  Intro text\n  * first\n  * second\n")
        body = to_markdown(OrgHeadingSource(str(path)).section_text())
        assert body == "Intro text\n- first\n- second"

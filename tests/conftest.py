"""
Shared test fixtures for clubhouse-sync tests.
Patches config module state so no test reads the real .env or talks to the API.
"""

import os
import sys

import pytest

# Add project root to path so imports work
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch):
    """Ensure every test starts with a clean config state."""
    from clubhouse_sync import config

    monkeypatch.setattr(config, "env", {})
    monkeypatch.setattr(config, "API_TOKEN", "fake-token")
    monkeypatch.setattr(config, "TOKEN_FILE", "")
    monkeypatch.setattr(config, "GPG_PROGRAM", "gpg")
    monkeypatch.setattr(config, "BASE_URL", "https://api.example.test/api/v3")
    monkeypatch.setattr(config, "HTTP_LOG_ENABLED", False)
    monkeypatch.setattr(config, "HTTP_LOG_SAMPLE_RATE", 1.0)
    monkeypatch.setattr(config, "DEFAULT_STORY_TYPE", "feature")
    monkeypatch.setattr(config, "LOG_MARKER", ":LOGBOOK:")
    monkeypatch.setattr(config, "RUNTIME_DRY_RUN", False)
    monkeypatch.setattr(config, "RUNTIME_QUIET", False)


class FakeClient:
    """In-memory stand-in for ClubhouseClient.

    Collections are plain lists of resource dicts; ``calls`` records every
    method invoked so tests can assert on remote traffic.
    """

    def __init__(self, stories=None, projects=None, epics=None, labels=None, workflows=None):
        self.stories = dict(stories or {})
        self.collections = {
            "project": list(projects or []),
            "epic": list(epics or []),
            "label": list(labels or []),
            "workflow": list(workflows or []),
        }
        self.calls = []
        self.dry_run = False
        self.next_id = 900
        self.next_updated_at = "2024-06-01T00:00:00Z"

    def get_story(self, story_id):
        self.calls.append(("get_story", story_id))
        return dict(self.stories[story_id])

    def update_story(self, story_id, payload):
        self.calls.append(("update_story", story_id, payload))
        if self.dry_run:
            return None
        story = dict(self.stories[story_id])
        story.update({k: v for k, v in payload.items() if k != "labels"})
        if "labels" in payload:
            story["labels"] = [dict(label) for label in payload["labels"]]
        story["updated_at"] = self.next_updated_at
        self.stories[story_id] = story
        return dict(story)

    def create_story(self, payload):
        self.calls.append(("create_story", payload))
        if self.dry_run:
            return None
        story_id = self.next_id
        self.next_id += 1
        return {"id": story_id, "app_url": f"https://app.example.test/story/{story_id}"}

    def list_collection(self, kind):
        self.calls.append(("list_collection", kind))
        return list(self.collections[kind])


def make_story(**overrides):
    story = {
        "id": 42,
        "name": "Fix bug",
        "story_type": "bug",
        "project_id": 7,
        "workflow_state_id": 500,
        "updated_at": "2023-01-01T00:00:00Z",
        "description": "Line one\n\nLine two",
        "estimate": 3,
        "epic_id": 11,
        "labels": [{"id": 1, "name": "ui"}, {"id": 2, "name": "urgent"}],
        "app_url": "https://app.example.test/story/42",
    }
    story.update(overrides)
    return story


def make_client(stories=None):
    """A FakeClient with standard reference data and the given stories."""
    return FakeClient(
        stories=stories or {42: make_story()},
        projects=[
            {"id": 7, "name": "Backend"},
            {"id": 8, "name": "Frontend"},
            {"id": 9, "name": "Old", "archived": True},
        ],
        epics=[{"id": 11, "name": "Launch"}, {"id": 12, "name": "Cleanup", "archived": "true"}],
        labels=[{"id": 1, "name": "ui"}, {"id": 2, "name": "urgent"}],
        workflows=[
            {
                "id": 1,
                "name": "Dev",
                "states": [
                    {"id": 500, "name": "Unstarted"},
                    {"id": 501, "name": "In Progress"},
                    {"id": 502, "name": "Done"},
                ],
            }
        ],
    )


@pytest.fixture
def client():
    return make_client()

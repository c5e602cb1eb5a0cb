"""
Command implementations for clubhouse-sync.
Each cmd_*() function receives an argparse.Namespace and handles one CLI command.

Sync logic lives in sync.py (SyncEngine). These thin wrappers handle
argparse → engine calls, format selection, and exit status for refusals.
"""

import sys

from clubhouse_sync.client import ClubhouseClient
from clubhouse_sync.formatters import (
    format_outcome,
    format_pairs_table,
    format_states_table,
    output,
)
from clubhouse_sync.references import ReferenceCache
from clubhouse_sync.surface import FileSurface, OrgHeadingSource
from clubhouse_sync.sync import SyncEngine


def _engine(path):
    return SyncEngine(ClubhouseClient(), FileSurface(path))


def _split_labels(raw):
    if not raw:
        return None
    return [v.strip() for v in raw.split(",") if v.strip()]


def _emit_outcome(outcome, fmt):
    """Print the outcome; refusals exit with status 1."""
    output(outcome.to_dict(), format_outcome, fmt)
    if outcome.refused:
        sys.exit(1)


# ---------------------------------------------------------------------------
# Story document commands
# ---------------------------------------------------------------------------


def cmd_open(ns):
    engine = _engine(ns.file)
    if engine.surface.exists():
        outcome = engine.refresh(force=ns.force, story_id=ns.story_id)
    else:
        outcome = engine.load(ns.story_id)
    _emit_outcome(outcome, ns.format)


def cmd_save(ns):
    _emit_outcome(_engine(ns.file).save(), ns.format)


def cmd_refresh(ns):
    _emit_outcome(_engine(ns.file).refresh(force=ns.force), ns.format)


def cmd_create(ns):
    engine = _engine(ns.org_file)
    source = OrgHeadingSource(ns.org_file, heading=ns.heading)
    outcome = engine.create(
        source,
        project=ns.project,
        epic=ns.epic,
        story_type=ns.story_type,
        state=ns.state,
        labels=_split_labels(ns.labels),
    )
    _emit_outcome(outcome, ns.format)


# ---------------------------------------------------------------------------
# Reference listings
# ---------------------------------------------------------------------------


def _cmd_pairs(ns, kind):
    pairs = ReferenceCache(ClubhouseClient()).get(kind)
    data = {"kind": kind, "items": [p.to_dict() for p in pairs]}
    output(data, format_pairs_table, ns.format)


def cmd_projects(ns):
    _cmd_pairs(ns, "project")


def cmd_epics(ns):
    _cmd_pairs(ns, "epic")


def cmd_labels(ns):
    _cmd_pairs(ns, "label")


def cmd_states(ns):
    workflows = ReferenceCache(ClubhouseClient()).get_workflows()
    data = {"workflows": [w.to_dict() for w in workflows]}
    output(data, format_states_table, ns.format)

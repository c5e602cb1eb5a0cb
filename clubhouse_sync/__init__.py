"""clubhouse-sync: edit Clubhouse stories as local documents, with conflict-checked saves."""

from clubhouse_sync.client import ClubhouseClient
from clubhouse_sync.config import VERSION
from clubhouse_sync.exceptions import CliError, ResolutionError, SetupError, TransportError
from clubhouse_sync.models import IdNamePair, Story, Workflow, WorkflowState
from clubhouse_sync.references import ReferenceCache, WorkflowStateResolver
from clubhouse_sync.surface import (
    EditingSurface,
    FileSurface,
    MemorySurface,
    OrgHeadingSource,
    TextCreationSource,
)
from clubhouse_sync.sync import SyncEngine, SyncOutcome, SyncState

__all__ = [
    "VERSION",
    "ClubhouseClient",
    "CliError",
    "ResolutionError",
    "SetupError",
    "TransportError",
    "IdNamePair",
    "Story",
    "Workflow",
    "WorkflowState",
    "ReferenceCache",
    "WorkflowStateResolver",
    "EditingSurface",
    "FileSurface",
    "MemorySurface",
    "OrgHeadingSource",
    "TextCreationSource",
    "SyncEngine",
    "SyncOutcome",
    "SyncState",
]

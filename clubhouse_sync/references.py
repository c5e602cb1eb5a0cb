"""
Session-scoped reference data: projects, epics, labels, and workflows.

One ReferenceCache lives for one session. Nothing is refreshed implicitly;
callers ask for refresh() when they need fresh data.
"""

from clubhouse_sync import config
from clubhouse_sync.exceptions import CliError
from clubhouse_sync.models import Workflow, find_by_id, find_by_name, pairs_from_resources


class ReferenceCache:
    """Lazily fetched, memoized lookup collections."""

    def __init__(self, client):
        self.client = client
        self._collections = {}
        self._workflows = None

    def _check_kind(self, kind):
        if kind not in config.REFERENCE_KINDS:
            raise CliError(
                f"[ERROR] Unknown reference kind '{kind}'. "
                f"Valid: {', '.join(config.REFERENCE_KINDS)}"
            )

    def _fetch(self, kind):
        # Assigned only after a complete fetch; a failure leaves the cache as it was.
        pairs = pairs_from_resources(self.client.list_collection(kind))
        self._collections[kind] = pairs
        return pairs

    def _fetch_workflows(self):
        workflows = [Workflow.from_resource(w) for w in self.client.list_collection("workflow")]
        self._workflows = workflows
        return workflows

    def is_cached(self, kind):
        if kind == "workflow":
            return self._workflows is not None
        return kind in self._collections

    def get(self, kind):
        """Return the IdNamePairs for *kind*, fetching on first use."""
        self._check_kind(kind)
        if not self.is_cached(kind):
            return self._fetch(kind)
        return self._collections[kind]

    def refresh(self, kind):
        """Force a refetch of one kind ("workflow" included)."""
        if kind == "workflow":
            return self._fetch_workflows()
        self._check_kind(kind)
        return self._fetch(kind)

    def get_workflows(self):
        """Return the nested workflow structure, fetched once per session."""
        if not self.is_cached("workflow"):
            return self._fetch_workflows()
        return self._workflows

    def by_id(self, kind, item_id):
        return find_by_id(self.get(kind), item_id)

    def by_name(self, kind, name):
        return find_by_name(self.get(kind), name)


class WorkflowStateResolver:
    """Lookup of workflow states across every cached workflow."""

    def __init__(self, cache):
        self.cache = cache

    def states(self):
        """All states, flattened in workflow order."""
        return [state for workflow in self.cache.get_workflows() for state in workflow.states]

    def state_by_id(self, state_id):
        for state in self.states():
            if state.id == state_id:
                return state
        return None

    def state_by_name(self, name):
        for state in self.states():
            if state.name == name:
                return state
        return None

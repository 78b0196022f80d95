"""
Per-team group locks.

For every team and criterion at most one group is locked in. The store is
written exclusively by ``AssignmentManager``; everything else reads it.
"""

from typing import Dict, Optional


class CommitmentStore:
    """Index of ``team_id -> {criterion -> group}``."""

    def __init__(self):
        self._locks: Dict[int, Dict[str, str]] = {}

    def committed_group(self, team_id: int, criterion: str) -> Optional[str]:
        return self._locks.get(team_id, {}).get(criterion)

    def lock(self, team_id: int, criterion: str, group: str):
        self._locks.setdefault(team_id, {})[criterion] = group

    def release(self, team_id: int, criterion: str):
        team_locks = self._locks.get(team_id)
        if team_locks is None:
            return
        team_locks.pop(criterion, None)
        if not team_locks:
            del self._locks[team_id]

    def __repr__(self) -> str:
        return f"CommitmentStore({self._locks!r})"

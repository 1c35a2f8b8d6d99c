"""
In-memory PatternStore, used by tests and when no storage directory is configured.
"""
import copy
from typing import List, Optional

from aura_engine.services.storage.base import PatternStore
from aura_engine.types.cognitive import AdaptiveThresholds, StateTransition
from aura_engine.types.context import ContextSnapshot, LearnedPatterns


class InMemoryPatternStore(PatternStore):

    def __init__(self):
        self._snapshots: List[ContextSnapshot] = []
        self._transitions: List[StateTransition] = []
        self._patterns: Optional[LearnedPatterns] = None
        self._thresholds: Optional[AdaptiveThresholds] = None

    def append_snapshot(self, snapshot: ContextSnapshot) -> None:
        self._snapshots.append(snapshot)

    def append_transition(self, transition: StateTransition) -> None:
        self._transitions.append(transition)

    def get_snapshots(self, since: float) -> List[ContextSnapshot]:
        return [s for s in self._snapshots if s.timestamp >= since]

    def get_transitions(self, since: float) -> List[StateTransition]:
        return [t for t in self._transitions if t.timestamp >= since]

    def count_snapshots(self) -> int:
        return len(self._snapshots)

    def prune_snapshots(self, cutoff: float, max_entries: int) -> int:
        before = len(self._snapshots)
        kept = [s for s in self._snapshots if s.timestamp >= cutoff]
        if len(kept) > max_entries:
            kept = kept[-max_entries:]
        self._snapshots = kept
        return before - len(kept)

    def delete_snapshots_before(self, cutoff: float) -> int:
        before = len(self._snapshots)
        self._snapshots = [s for s in self._snapshots if s.timestamp >= cutoff]
        return before - len(self._snapshots)

    def save_patterns(self, patterns: LearnedPatterns) -> None:
        self._patterns = copy.deepcopy(patterns)

    def load_patterns(self) -> Optional[LearnedPatterns]:
        return copy.deepcopy(self._patterns)

    def save_thresholds(self, thresholds: AdaptiveThresholds) -> None:
        self._thresholds = thresholds

    def load_thresholds(self) -> Optional[AdaptiveThresholds]:
        return self._thresholds

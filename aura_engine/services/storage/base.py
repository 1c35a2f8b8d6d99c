"""
Persistence contract between the engine and its storage collaborator.

Writes are append-only for snapshots and transitions; learned patterns
and adaptive thresholds are stored as one current document each. Reads
support "since" range queries used for analytics and for seeding learning
at startup.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from aura_engine.types.cognitive import AdaptiveThresholds, StateTransition
from aura_engine.types.context import ContextSnapshot, LearnedPatterns


class StorageError(Exception):
    """A storage backend could not complete a read or write."""


class PatternStore(ABC):
    """
    Abstract storage backend. Implementations raise StorageError on failure;
    they never return partial writes silently.
    """

    @abstractmethod
    def append_snapshot(self, snapshot: ContextSnapshot) -> None:
        pass

    @abstractmethod
    def append_transition(self, transition: StateTransition) -> None:
        pass

    @abstractmethod
    def get_snapshots(self, since: float) -> List[ContextSnapshot]:
        """Snapshots with ``timestamp >= since``, oldest first."""
        pass

    @abstractmethod
    def get_transitions(self, since: float) -> List[StateTransition]:
        """Transitions with ``timestamp >= since``, in recorded order."""
        pass

    @abstractmethod
    def count_snapshots(self) -> int:
        pass

    @abstractmethod
    def prune_snapshots(self, cutoff: float, max_entries: int) -> int:
        """
        Delete snapshots older than ``cutoff`` and then the oldest beyond
        ``max_entries``.

        Returns:
            Number of snapshots deleted.
        """
        pass

    @abstractmethod
    def delete_snapshots_before(self, cutoff: float) -> int:
        """Unconditional delete used by the emergency cleanup path."""
        pass

    @abstractmethod
    def save_patterns(self, patterns: LearnedPatterns) -> None:
        pass

    @abstractmethod
    def load_patterns(self) -> Optional[LearnedPatterns]:
        pass

    @abstractmethod
    def save_thresholds(self, thresholds: AdaptiveThresholds) -> None:
        pass

    @abstractmethod
    def load_thresholds(self) -> Optional[AdaptiveThresholds]:
        pass

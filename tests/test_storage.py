"""
Tests for the PatternStore backends.
"""
import json

import pytest

from aura_engine.services.storage import (
    InMemoryPatternStore,
    JsonlPatternStore,
    StorageError,
    create_pattern_store,
)
from aura_engine.types.cognitive import AdaptiveThresholds, CognitiveStateType, StateTransition
from aura_engine.types.config import StorageBackend, StorageConfig
from aura_engine.types.context import (
    EnvironmentType,
    KnownLocation,
    LearnedPatterns,
    OptimalTimeEntry,
    RecommendedAction,
)

from conftest import MONDAY_10AM, make_snapshot


@pytest.fixture(params=["memory", "jsonl"])
def pattern_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryPatternStore()
    return JsonlPatternStore(str(tmp_path / "store"))


def transition(sequence, timestamp):
    return StateTransition(
        sequence=sequence,
        from_state=CognitiveStateType.DEEP_FOCUS,
        to_state=CognitiveStateType.FRAGMENTED_ATTENTION,
        timestamp=timestamp,
        trigger="metrics-driven",
        confidence=0.6,
    )


class TestPatternStore:
    """Behavior shared by every backend."""

    def test_snapshot_range_query(self, pattern_store):
        for i in range(3):
            pattern_store.append_snapshot(make_snapshot(MONDAY_10AM + i * 60))

        recent = pattern_store.get_snapshots(MONDAY_10AM + 60)
        assert [s.timestamp for s in recent] == [MONDAY_10AM + 60, MONDAY_10AM + 120]
        assert recent[0].recommended_action == RecommendedAction.PROCEED
        assert pattern_store.count_snapshots() == 3

    def test_transitions_keep_recorded_order(self, pattern_store):
        pattern_store.append_transition(transition(1, MONDAY_10AM))
        pattern_store.append_transition(transition(2, MONDAY_10AM + 60))

        stored = pattern_store.get_transitions(0)
        assert [t.sequence for t in stored] == [1, 2]
        assert stored[0] == transition(1, MONDAY_10AM)

    def test_prune_by_age_then_cap(self, pattern_store):
        for i in range(6):
            pattern_store.append_snapshot(make_snapshot(MONDAY_10AM + i))

        removed = pattern_store.prune_snapshots(cutoff=MONDAY_10AM + 1, max_entries=3)
        assert removed == 3
        assert [s.timestamp for s in pattern_store.get_snapshots(0)] == [
            MONDAY_10AM + 3, MONDAY_10AM + 4, MONDAY_10AM + 5,
        ]

    def test_delete_before(self, pattern_store):
        for i in range(4):
            pattern_store.append_snapshot(make_snapshot(MONDAY_10AM + i))
        assert pattern_store.delete_snapshots_before(MONDAY_10AM + 2) == 2
        assert pattern_store.count_snapshots() == 2

    def test_patterns_round_trip(self, pattern_store):
        assert pattern_store.load_patterns() is None
        patterns = LearnedPatterns(
            optimal_times=[OptimalTimeEntry(10.0, "monday", 0.9)],
            known_locations=[KnownLocation("Library", 59.9, 10.7, EnvironmentType.LIBRARY, [0.8, 0.9])],
        )
        pattern_store.save_patterns(patterns)
        assert pattern_store.load_patterns() == patterns

    def test_thresholds_round_trip(self, pattern_store):
        assert pattern_store.load_thresholds() is None
        thresholds = AdaptiveThresholds(fragmented_max=0.42, version=3)
        pattern_store.save_thresholds(thresholds)
        assert pattern_store.load_thresholds() == thresholds


class TestJsonlStore:

    def test_files_are_json_lines(self, tmp_path):
        store = JsonlPatternStore(str(tmp_path))
        store.append_snapshot(make_snapshot(MONDAY_10AM))

        lines = (tmp_path / "snapshots.jsonl").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["timestamp"] == MONDAY_10AM
        assert record["location"]["environment"] == "unknown"

    def test_torn_line_is_skipped(self, tmp_path):
        store = JsonlPatternStore(str(tmp_path))
        store.append_snapshot(make_snapshot(MONDAY_10AM))
        with open(tmp_path / "snapshots.jsonl", "a", encoding="utf-8") as f:
            f.write('{"timestamp": 17041')

        assert store.count_snapshots() == 1

    def test_undecodable_records_are_skipped(self, tmp_path):
        store = JsonlPatternStore(str(tmp_path))
        store.append_snapshot(make_snapshot(MONDAY_10AM))
        store.append_transition(transition(1, MONDAY_10AM))
        with open(tmp_path / "snapshots.jsonl", "a", encoding="utf-8") as f:
            f.write(json.dumps({"timestamp": MONDAY_10AM + 60, "location": {"coordinates": {"lat": 1.0}}}) + "\n")
            f.write("[1, 2]\n")
        with open(tmp_path / "transitions.jsonl", "a", encoding="utf-8") as f:
            f.write(json.dumps({"timestamp": MONDAY_10AM + 60, "to_state": "Daydreaming"}) + "\n")

        assert [s.timestamp for s in store.get_snapshots(0)] == [MONDAY_10AM]
        assert store.get_transitions(0) == [transition(1, MONDAY_10AM)]

    def test_corrupt_document_raises_storage_error(self, tmp_path):
        (tmp_path / "patterns.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            JsonlPatternStore(str(tmp_path)).load_patterns()

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("", encoding="utf-8")
        with pytest.raises(StorageError):
            JsonlPatternStore(str(blocker / "store"))


class TestFactory:

    def test_memory_by_default(self):
        assert isinstance(create_pattern_store(), InMemoryPatternStore)

    def test_jsonl_backend(self, tmp_path):
        store = create_pattern_store(StorageConfig(backend=StorageBackend.JSONL, directory=str(tmp_path)))
        assert isinstance(store, JsonlPatternStore)
        assert store.directory == tmp_path

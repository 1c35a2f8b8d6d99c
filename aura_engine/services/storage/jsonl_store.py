"""
File-backed PatternStore.

Layout under the storage directory:
    snapshots.jsonl    one ContextSnapshot per line (append-only)
    transitions.jsonl  one StateTransition per line (append-only)
    patterns.json      current LearnedPatterns
    thresholds.json    current AdaptiveThresholds

Pruning rewrites snapshots.jsonl through a temporary file so a crash never
leaves a half-written log behind.
"""
import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from aura_engine.api.serialization import json_safe
from aura_engine.services.storage.base import PatternStore, StorageError
from aura_engine.types.cognitive import AdaptiveThresholds, StateTransition
from aura_engine.types.context import ContextSnapshot, LearnedPatterns


SNAPSHOTS_FILE = "snapshots.jsonl"
TRANSITIONS_FILE = "transitions.jsonl"
PATTERNS_FILE = "patterns.json"
THRESHOLDS_FILE = "thresholds.json"

T = TypeVar("T")


class JsonlPatternStore(PatternStore):

    def __init__(self, directory: str):
        self._dir = Path(directory)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"cannot create storage directory {self._dir}: {e}") from e

    @property
    def directory(self) -> Path:
        return self._dir

    # --- Append-only logs ---

    def append_snapshot(self, snapshot: ContextSnapshot) -> None:
        self._append(SNAPSHOTS_FILE, json_safe(snapshot))

    def append_transition(self, transition: StateTransition) -> None:
        self._append(TRANSITIONS_FILE, json_safe(transition))

    def get_snapshots(self, since: float) -> List[ContextSnapshot]:
        return self._decode(SNAPSHOTS_FILE, ContextSnapshot.from_dict, since)

    def get_transitions(self, since: float) -> List[StateTransition]:
        return self._decode(TRANSITIONS_FILE, StateTransition.from_dict, since)

    def count_snapshots(self) -> int:
        return len(self._read_lines(SNAPSHOTS_FILE))

    def prune_snapshots(self, cutoff: float, max_entries: int) -> int:
        records = self._read_lines(SNAPSHOTS_FILE)
        kept = [r for r in records if float(r.get("timestamp", 0.0)) >= cutoff]
        if len(kept) > max_entries:
            kept = kept[-max_entries:]
        if len(kept) != len(records):
            self._rewrite(SNAPSHOTS_FILE, kept)
        return len(records) - len(kept)

    def delete_snapshots_before(self, cutoff: float) -> int:
        records = self._read_lines(SNAPSHOTS_FILE)
        kept = [r for r in records if float(r.get("timestamp", 0.0)) >= cutoff]
        if len(kept) != len(records):
            self._rewrite(SNAPSHOTS_FILE, kept)
        return len(records) - len(kept)

    # --- Current documents ---

    def save_patterns(self, patterns: LearnedPatterns) -> None:
        self._write_document(PATTERNS_FILE, patterns.to_dict())

    def load_patterns(self) -> Optional[LearnedPatterns]:
        data = self._read_document(PATTERNS_FILE)
        return LearnedPatterns.from_dict(data) if data is not None else None

    def save_thresholds(self, thresholds: AdaptiveThresholds) -> None:
        self._write_document(THRESHOLDS_FILE, json_safe(thresholds))

    def load_thresholds(self) -> Optional[AdaptiveThresholds]:
        data = self._read_document(THRESHOLDS_FILE)
        return AdaptiveThresholds.from_dict(data) if data is not None else None

    # --- Internal Methods ---

    def _append(self, name: str, record: Dict[str, Any]) -> None:
        try:
            with open(self._dir / name, "a", encoding="utf-8") as f:
                f.write(json.dumps(record) + "\n")
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"append to {name} failed: {e}") from e

    def _decode(
        self,
        name: str,
        parse: Callable[[Dict[str, Any]], T],
        since: float,
    ) -> List[T]:
        decoded = []
        for record in self._read_lines(name):
            try:
                if float(record.get("timestamp", 0.0)) < since:
                    continue
                decoded.append(parse(record))
            except (AttributeError, KeyError, TypeError, ValueError):
                # Written by an older or foreign schema; skipped like a torn line
                continue
        return decoded

    def _read_lines(self, name: str) -> List[Dict[str, Any]]:
        path = self._dir / name
        if not path.exists():
            return []
        records = []
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        record = json.loads(line)
                    except json.JSONDecodeError:
                        # A torn final line from a crash; the rest is usable
                        continue
                    if isinstance(record, dict):
                        records.append(record)
        except OSError as e:
            raise StorageError(f"read of {name} failed: {e}") from e
        return records

    def _rewrite(self, name: str, records: List[Dict[str, Any]]) -> None:
        path = self._dir / name
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                for record in records:
                    f.write(json.dumps(record) + "\n")
            os.replace(tmp, path)
        except OSError as e:
            raise StorageError(f"rewrite of {name} failed: {e}") from e

    def _write_document(self, name: str, data: Dict[str, Any]) -> None:
        path = self._dir / name
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"write of {name} failed: {e}") from e

    def _read_document(self, name: str) -> Optional[Dict[str, Any]]:
        path = self._dir / name
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"read of {name} failed: {e}") from e

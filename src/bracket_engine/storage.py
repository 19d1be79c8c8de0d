"""
File-backed event store with optimistic concurrency.

Each event lives in its own directory:

    <data_dir>/<event_id>/brackets.yaml   {revision, brackets: {id: bracket}}
    <data_dir>/<event_id>/schedule.yaml   {brackets_revision, mat_fight_order}
    <data_dir>/<event_id>/.lock

Bracket writes are compare-and-swap on the bracket version; every write bumps
the event revision. Schedule recomputation holds the event lock for the whole
read-compute-write cycle, so it always works from the latest brackets.
"""
import logging
import os
import re
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import yaml
from filelock import FileLock

from .errors import ConcurrentModification, ScheduleConflict
from .models import Bracket, FightSchedule
from .scheduling import schedule_fights

logger = logging.getLogger(__name__)

EVENT_ID_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_-]*$')


class EventStore:
    BRACKETS_FILE = 'brackets.yaml'
    SCHEDULE_FILE = 'schedule.yaml'
    LOCK_FILE = '.lock'

    def __init__(self, data_dir, lock_timeout=10):
        self.data_dir = data_dir
        self.lock_timeout = lock_timeout
        self._locks: Dict[str, FileLock] = {}
        self._listeners: List[Callable] = []

    # -- plumbing -----------------------------------------------------------

    def event_dir(self, event_id):
        if not EVENT_ID_PATTERN.match(event_id or ''):
            raise ValueError(f"Invalid event id: {event_id!r}")
        return os.path.join(self.data_dir, event_id)

    def _path(self, event_id, name):
        return os.path.join(self.event_dir(event_id), name)

    def lock(self, event_id) -> FileLock:
        """Per-event lock; reentrant within a thread."""
        if event_id not in self._locks:
            os.makedirs(self.event_dir(event_id), exist_ok=True)
            self._locks[event_id] = FileLock(self._path(event_id, self.LOCK_FILE), timeout=self.lock_timeout)
        return self._locks[event_id]

    def add_listener(self, listener: Callable):
        """Register listener(event_id, change, payload), called after each write."""
        self._listeners.append(listener)

    def _notify(self, event_id, change, payload):
        for listener in self._listeners:
            listener(event_id, change, payload)

    def _read_yaml(self, path, default):
        if not os.path.exists(path):
            return default
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        return data if data else default

    def _write_yaml(self, path, data):
        tmp_path = path + '.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False)
        os.replace(tmp_path, path)

    def _read_brackets_file(self, event_id):
        data = self._read_yaml(self._path(event_id, self.BRACKETS_FILE), {})
        return data.get('revision', 0), data.get('brackets') or {}

    def _write_brackets_file(self, event_id, revision, raw_brackets):
        self._write_yaml(self._path(event_id, self.BRACKETS_FILE),
                         {'revision': revision, 'brackets': raw_brackets})

    # -- brackets -----------------------------------------------------------

    def load_brackets(self, event_id) -> Tuple[int, Dict[str, Bracket]]:
        """Return (revision, bracket_id -> Bracket)."""
        with self.lock(event_id):
            revision, raw = self._read_brackets_file(event_id)
        return revision, {bracket_id: Bracket.from_dict(data) for bracket_id, data in raw.items()}

    def load_bracket(self, event_id, bracket_id) -> Optional[Bracket]:
        _, brackets = self.load_brackets(event_id)
        return brackets.get(bracket_id)

    def save_bracket(self, event_id, bracket: Bracket, expected_version: Optional[int]) -> int:
        """
        Write a bracket if the stored copy still has expected_version.

        expected_version None means the bracket must not exist yet. Returns the
        new event revision; raises ConcurrentModification on a version mismatch.
        """
        with self.lock(event_id):
            revision, raw = self._read_brackets_file(event_id)
            stored = raw.get(bracket.id)
            actual_version = stored.get('version', 1) if stored else None
            if actual_version != expected_version:
                raise ConcurrentModification(bracket.id, expected_version, actual_version)
            if stored and bracket.version == actual_version:
                return revision
            raw[bracket.id] = bracket.to_dict()
            revision += 1
            self._write_brackets_file(event_id, revision, raw)
        logger.debug("Saved bracket %s v%d (event %s revision %d)", bracket.id, bracket.version, event_id, revision)
        self._notify(event_id, 'bracket', {'bracket_id': bracket.id, 'version': bracket.version})
        return revision

    def update_bracket(self, event_id, bracket_id, operation: Callable[[Bracket], Bracket],
                       retries=3) -> Bracket:
        """
        Read a bracket, apply operation to it and write the result back.

        On a concurrent write the bracket is re-read and the operation
        re-applied, up to retries extra attempts.
        """
        attempt = 0
        while True:
            current = self.load_bracket(event_id, bracket_id)
            if current is None:
                raise LookupError(f"Bracket {bracket_id} not found in event {event_id}")
            updated = operation(current)
            try:
                self.save_bracket(event_id, updated, current.version)
                return updated
            except ConcurrentModification:
                attempt += 1
                if attempt > retries:
                    raise
                logger.warning("Bracket %s changed underneath us; retrying (%d/%d)", bracket_id, attempt, retries)

    def replace_brackets(self, event_id, brackets: Dict[str, Bracket],
                         remove_ids: Iterable[str] = (), expected_revision: Optional[int] = None) -> int:
        """Write new or regenerated brackets wholesale, dropping remove_ids first."""
        with self.lock(event_id):
            revision, raw = self._read_brackets_file(event_id)
            if expected_revision is not None and revision != expected_revision:
                raise ConcurrentModification(event_id, expected_revision, revision)
            for bracket_id in remove_ids:
                raw.pop(bracket_id, None)
            for bracket_id, bracket in brackets.items():
                previous = raw.get(bracket_id)
                if previous:
                    bracket.version = max(bracket.version, previous.get('version', 1) + 1)
                raw[bracket_id] = bracket.to_dict()
            revision += 1
            self._write_brackets_file(event_id, revision, raw)
        logger.info("Stored %d brackets for event %s (revision %d)", len(brackets), event_id, revision)
        self._notify(event_id, 'brackets', {'bracket_ids': sorted(brackets), 'revision': revision})
        return revision

    # -- schedule -----------------------------------------------------------

    def load_schedule(self, event_id) -> Tuple[Optional[int], FightSchedule]:
        """Return (brackets revision the schedule was computed from, FightSchedule)."""
        with self.lock(event_id):
            data = self._read_yaml(self._path(event_id, self.SCHEDULE_FILE), {})
        return data.get('brackets_revision'), FightSchedule.from_dict(data.get('mat_fight_order'))

    def save_schedule(self, event_id, schedule: FightSchedule, brackets_revision: int):
        """
        Store a schedule computed elsewhere.

        Raises ScheduleConflict when the brackets changed after the schedule
        was computed.
        """
        with self.lock(event_id):
            revision, _ = self._read_brackets_file(event_id)
            if revision != brackets_revision:
                raise ScheduleConflict(
                    f"Schedule for {event_id} was computed from revision {brackets_revision}, "
                    f"brackets are now at revision {revision}"
                )
            self._write_yaml(self._path(event_id, self.SCHEDULE_FILE),
                             {'brackets_revision': revision, 'mat_fight_order': schedule.to_dict()})
        self._notify(event_id, 'schedule', {'brackets_revision': brackets_revision})

    def recompute_schedule(self, event_id, categories, assignments, resource_count) -> FightSchedule:
        """Renumber every fight of the event from the latest stored brackets."""
        with self.lock(event_id):
            revision, raw = self._read_brackets_file(event_id)
            brackets = {bracket_id: Bracket.from_dict(data) for bracket_id, data in raw.items()}
            updated, schedule = schedule_fights(brackets, categories, assignments, resource_count)

            changed = [bracket_id for bracket_id, b in updated.items() if b.version != brackets[bracket_id].version]
            if changed:
                for bracket_id in changed:
                    raw[bracket_id] = updated[bracket_id].to_dict()
                revision += 1
                self._write_brackets_file(event_id, revision, raw)
            self._write_yaml(self._path(event_id, self.SCHEDULE_FILE),
                             {'brackets_revision': revision, 'mat_fight_order': schedule.to_dict()})
        logger.info("Recomputed schedule for %s (%d brackets renumbered)", event_id, len(changed))
        self._notify(event_id, 'schedule', {'brackets_revision': revision})
        return schedule

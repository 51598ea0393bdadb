# src/logic.py
import copy
import json
import logging
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

HABITS_KEY = "habits"
MAX_HABITS = 6


# -------------------------------
# DAYS
# -------------------------------
class Day(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"


DAYS = tuple(d.value for d in Day)


def day_label(day):
    """Return the label for a Day member or label string, or None if it is not a weekday."""
    if isinstance(day, Day):
        return day.value
    if isinstance(day, str) and day in DAYS:
        return day
    return None


# -------------------------------
# HABITS
# -------------------------------
class MalformedStoredRecord(ValueError):
    """A stored habit record does not have the expected shape."""


@dataclass
class Habit:
    name: str
    completed: dict = field(default_factory=dict)

    def is_done(self, day) -> bool:
        return bool(self.completed.get(day_label(day), False))

    def to_record(self) -> dict:
        return {"name": self.name, "completed": dict(self.completed)}

    @classmethod
    def from_record(cls, record) -> "Habit":
        if not isinstance(record, dict):
            raise MalformedStoredRecord(f"expected an object, got {type(record).__name__}")
        name = record.get("name")
        if not isinstance(name, str) or not name.strip():
            raise MalformedStoredRecord("missing habit name")
        completed = record.get("completed", {})
        if completed is None:
            completed = {}
        if not isinstance(completed, dict):
            raise MalformedStoredRecord(f"completed for '{name}' is not a mapping")
        for key, value in completed.items():
            if key not in DAYS:
                raise MalformedStoredRecord(f"unknown day '{key}' for '{name}'")
            if not isinstance(value, bool):
                raise MalformedStoredRecord(f"non-boolean value for '{name}' on {key}")
        return cls(name=name, completed=dict(completed))


def serialize_habits(habits) -> str:
    """Encode the collection as a JSON array of records, keeping order."""
    return json.dumps([h.to_record() for h in habits])


def deserialize_habits(raw) -> list:
    """
    Decode stored state, dropping records that fail validation.
    `raw` is JSON text, or a list already decoded by the backend (e.g. a
    jsonb column). Raises ValueError when the document itself is not an array.
    """
    if isinstance(raw, (str, bytes, bytearray)):
        data = json.loads(raw)
    else:
        data = raw
    if not isinstance(data, list):
        raise ValueError("stored habits are not a list")

    habits = []
    names = set()
    for index, record in enumerate(data):
        try:
            habit = Habit.from_record(record)
        except MalformedStoredRecord as e:
            logger.warning("Dropping stored habit #%d: %s", index, e)
            continue
        if habit.name in names:
            logger.warning("Dropping stored habit #%d: duplicate name '%s'", index, habit.name)
            continue
        if len(habits) >= MAX_HABITS:
            logger.warning("Dropping stored habit #%d: more than %d habits", index, MAX_HABITS)
            continue
        names.add(habit.name)
        habits.append(habit)
    return habits


# -------------------------------
# WEEKLY SUMMARY
# -------------------------------
def stars_for(completion_pct: float) -> int:
    if completion_pct >= 95:
        return 5
    elif completion_pct >= 85:
        return 4
    elif completion_pct >= 70:
        return 3
    elif completion_pct >= 50:
        return 2
    elif completion_pct >= 25:
        return 1
    return 0


def weekly_summary(habits) -> dict:
    """Completion counts for the current week grid."""
    daily_breakdown = []
    completed_cells = 0
    for day in DAYS:
        done = sum(1 for h in habits if h.is_done(day))
        completed_cells += done
        daily_breakdown.append({
            "day_name": day,
            "total_habits": len(habits),
            "completed_habits": done,
        })

    total_cells = len(habits) * len(DAYS)
    completion_pct = round(completed_cells / total_cells * 100, 1) if total_cells > 0 else 0
    return {
        "total_habits": len(habits),
        "completed_cells": completed_cells,
        "total_cells": total_cells,
        "completion_pct": completion_pct,
        "stars": stars_for(completion_pct),
        "daily_breakdown": daily_breakdown,
    }


# -------------------------------
# HABIT STORE
# -------------------------------
class HabitStore:
    """
    Owns the weekly habit collection and keeps the persistence collaborator
    in sync. The collaborator needs get(key) and set(key, value).
    """

    def __init__(self, persistence, key: str = HABITS_KEY):
        self.persistence = persistence
        self.key = key
        self._habits = []
        self._listeners = []

    def __len__(self):
        return len(self._habits)

    def __contains__(self, name):
        return self._find(name) is not None

    @property
    def habits(self) -> tuple:
        return tuple(copy.deepcopy(h) for h in self._habits)

    def get_habit(self, name):
        habit = self._find(name)
        return copy.deepcopy(habit) if habit else None

    def to_records(self) -> list:
        return [h.to_record() for h in self._habits]

    def weekly_summary(self) -> dict:
        return weekly_summary(self._habits)

    # ---------- Lifecycle ----------
    def initialize(self):
        """Hydrate from the collaborator; any load failure leaves the collection empty."""
        self._habits = []
        try:
            raw = self.persistence.get(self.key)
        except Exception as e:
            logger.warning("Could not load habits, starting empty: %s", e)
            raw = None

        if raw:
            try:
                self._habits = deserialize_habits(raw)
            except (TypeError, ValueError) as e:
                logger.warning("Stored habits are unreadable, starting empty: %s", e)

        logger.info("Loaded %d habits", len(self._habits))
        self._notify()
        return self.habits

    def subscribe(self, callback):
        """Call `callback(snapshot)` after every change. Returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    # ---------- Mutations ----------
    def add_habit(self, name: str) -> bool:
        name = (name or "").strip()
        if not name:
            logger.debug("Rejected empty habit name")
            return False
        if self._find(name) is not None:
            logger.debug("Rejected duplicate habit '%s'", name)
            return False
        if len(self._habits) >= MAX_HABITS:
            logger.debug("Rejected '%s': already tracking %d habits", name, MAX_HABITS)
            return False

        self._habits.append(Habit(name=name))
        self._changed()
        return True

    def delete_habit(self, name: str) -> bool:
        habit = self._find(name)
        if habit is None:
            return False
        self._habits.remove(habit)
        self._changed()
        return True

    def toggle_completion(self, name: str, day):
        label = day_label(day)
        habit = self._find(name)
        if habit is None or label is None:
            logger.debug("Ignored toggle for '%s' on %r", name, day)
            return None
        habit.completed[label] = not habit.completed.get(label, False)
        self._changed()
        return habit.completed[label]

    # ---------- Internals ----------
    def _find(self, name):
        for habit in self._habits:
            if habit.name == name:
                return habit
        return None

    def _changed(self):
        self._persist()
        self._notify()

    def _persist(self):
        # The in-memory collection stays authoritative if the write fails.
        try:
            self.persistence.set(self.key, serialize_habits(self._habits))
        except Exception as e:
            logger.warning("Could not save habits: %s", e)

    def _notify(self):
        snapshot = self.habits
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Habit listener failed")

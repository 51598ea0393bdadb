import os

# db reads its configuration at import time.
os.environ.setdefault("HABIT_STORE_BACKEND", "memory")

import pytest

from db import MemoryStore
from logic import HabitStore


@pytest.fixture
def kv() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def store(kv) -> HabitStore:
    s = HabitStore(kv)
    s.initialize()
    return s

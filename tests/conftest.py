# tests/conftest.py
import sys
from pathlib import Path

# ---------------------------------------------------------
# Ensure project root is on PYTHONPATH BEFORE app imports
# ---------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from tests.fakes import FakeCompletion, FakeDb


@pytest.fixture
def db():
    return FakeDb()


@pytest.fixture
def premium_db():
    fake = FakeDb()
    fake.make_premium("user-1")
    return fake


@pytest.fixture
def completion():
    return FakeCompletion()

# tests/conftest.py
"""
Shared fixtures: every test gets its own JSON store in a temporary directory,
so nothing touches the real ~/.gradecalc data.
"""

import pytest

from gradecalc.models import GWASubject
from gradecalc.repositories import GoalRepository, HistoryRepository, SubjectRepository
from gradecalc.storage import JsonStore


@pytest.fixture
def store(tmp_path):
    return JsonStore(tmp_path / "data")


@pytest.fixture
def history_repo(store):
    return HistoryRepository(store)


@pytest.fixture
def subject_repo(store):
    return SubjectRepository(store)


@pytest.fixture
def goal_repo(store):
    return GoalRepository(store)


@pytest.fixture
def make_subject():
    counter = iter(range(1, 1000))

    def _make(grade, units=3, name="Subject"):
        return GWASubject(id=next(counter), name=name, units=units, grade=grade)

    return _make

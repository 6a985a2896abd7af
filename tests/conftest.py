"""
conftest.py - Общие фикстуры тестов

- Замороженные часы, которые можно сдвигать вперёд
- Свежее состояние клуба
- Координатор поверх этого состояния
"""
import pytest
from datetime import datetime, timedelta

from database.repository import create_club_state
from services.coordinator import ReservationCoordinator


NOW = datetime(2026, 3, 10, 14, 30)


class FrozenClock:
    """Часы, которые идут только по команде"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def state():
    return create_club_state(now=NOW, balance=10000)


@pytest.fixture
def coordinator(state, clock):
    return ReservationCoordinator(state, clock=clock, allow_overlap=False)


def statuses(coordinator):
    """Статусы всех ПК по ID"""
    return {ws.id: ws.status for ws in coordinator.list_resources()}

"""
test_status_engine.py - Тесты движка статусов

Покрывают:
1. Вывод статуса ПК из броней (booked / occupied / available)
2. Идемпотентность прохода
3. Автозавершение сессий и начисление прогрессии
4. Пропуск некорректных записей
5. Приоритет ручного статуса администратора
"""
from datetime import datetime, timedelta

from database.models import (
    Booking, STATUS_AVAILABLE, STATUS_BOOKED, STATUS_MAINTENANCE, STATUS_OCCUPIED
)
from services.status_engine import (
    SweepReport, derive_status, find_holding_booking, run_sweep, session_reward
)

from conftest import NOW, statuses


def make_booking(pc_id, start, duration, booking_id=None, price=0):
    return Booking(
        id=booking_id,
        pc_id=pc_id,
        start_time=start,
        duration=duration,
        price=price,
        created_at=NOW
    )


class TestStatusDerivation:
    """Статус ПК по журналу броней"""

    def test_booking_lifecycle(self, coordinator, clock, state):
        """Будущая бронь -> booked, началась -> occupied, закончилась -> available и completed"""
        result = coordinator.create_booking(1, NOW + timedelta(minutes=30), 2)
        assert result.success
        booking_id = result.data['booking_id']
        assert statuses(coordinator)[1] == STATUS_BOOKED

        clock.advance(minutes=30)
        coordinator.refresh_statuses()
        assert statuses(coordinator)[1] == STATUS_OCCUPIED

        clock.advance(hours=2)
        coordinator.refresh_statuses()
        assert statuses(coordinator)[1] == STATUS_AVAILABLE
        assert state.bookings.get(booking_id).completed

    def test_pc_without_bookings_is_available(self, coordinator):
        """ПК без броней свободны"""
        assert set(statuses(coordinator).values()) == {STATUS_AVAILABLE}

    def test_earliest_start_decides(self, state):
        """Статус определяет бронь с самым ранним началом"""
        workstation = state.registry.get(3)
        later = make_booking(3, NOW + timedelta(hours=3), 1, booking_id=1)
        current = make_booking(3, NOW - timedelta(minutes=30), 1, booking_id=2)

        assert derive_status(workstation, [later, current], NOW) == STATUS_OCCUPIED
        assert derive_status(workstation, [later], NOW) == STATUS_BOOKED

    def test_equal_start_keeps_insertion_order(self):
        """При равном начале держит ПК бронь, созданная раньше"""
        first = make_booking(4, NOW + timedelta(hours=1), 2, booking_id=1)
        second = make_booking(4, NOW + timedelta(hours=1), 1, booking_id=2)

        assert find_holding_booking([first, second], NOW) is first
        assert find_holding_booking([second, first], NOW) is second

    def test_completed_booking_does_not_hold(self, state):
        """Завершённая бронь не влияет на статус"""
        booking = make_booking(5, NOW - timedelta(minutes=10), 2)
        booking.completed = True

        assert derive_status(state.registry.get(5), [booking], NOW) == STATUS_AVAILABLE


class TestIdempotence:
    """Повторный проход без изменений ничего не меняет"""

    def test_double_sweep_is_noop(self, coordinator, clock):
        coordinator.create_booking(1, NOW - timedelta(minutes=20), 1)
        coordinator.create_booking(2, NOW + timedelta(hours=1), 2)
        clock.advance(hours=1)

        first = coordinator.refresh_statuses()
        statuses_after_first = statuses(coordinator)
        account_after_first = coordinator.get_account()
        bookings_after_first = coordinator.list_bookings()

        second = coordinator.refresh_statuses()

        assert first.completed
        assert not second.changed
        assert statuses(coordinator) == statuses_after_first
        assert coordinator.get_account() == account_after_first
        assert coordinator.list_bookings() == bookings_after_first


class TestSessionCompletion:
    """Автозавершение сессий и прогрессия"""

    def test_session_reward_formula(self):
        assert session_reward(1) == 15
        assert session_reward(3) == 25

    def test_elapsed_three_hour_booking(self, coordinator, clock):
        """Сессия на 3 часа: +3 часа и +25 рейтинга"""
        coordinator.create_booking(21, NOW, 3)
        clock.advance(hours=3)

        report = coordinator.refresh_statuses()
        account = coordinator.get_account()

        assert account.total_hours == 3
        assert account.rating == 1500 + 25
        assert account.level == 1
        assert report.rating_gain == 25
        assert report.hours_gain == 3

    def test_level_recomputed(self, coordinator, clock, state):
        """Уровень считается как total_hours // 100 + 1"""
        state.account.total_hours = 98
        coordinator.create_booking(21, NOW, 3)
        clock.advance(hours=4)

        report = coordinator.refresh_statuses()

        assert coordinator.get_account().total_hours == 101
        assert coordinator.get_account().level == 2
        assert report.level == 2

    def test_simultaneous_completions_accumulate(self, coordinator, clock):
        """Несколько сессий за один проход начисляются независимо"""
        coordinator.create_booking(1, NOW, 1)
        coordinator.create_booking(2, NOW, 2)
        clock.advance(hours=5)

        report = coordinator.refresh_statuses()

        assert len(report.completed) == 2
        assert report.rating_gain == 15 + 20
        assert coordinator.get_account().rating == 1535
        assert coordinator.get_account().total_hours == 3

    def test_completion_before_derivation(self, state):
        """Закончившаяся бронь в том же проходе не держит ПК занятым"""
        state.bookings.insert(make_booking(6, NOW - timedelta(hours=2), 2))
        state.registry.get(6).status = STATUS_OCCUPIED

        report = run_sweep(state, NOW)

        assert state.registry.get(6).status == STATUS_AVAILABLE
        assert report.status_changes[6] == (STATUS_OCCUPIED, STATUS_AVAILABLE)


class TestMalformedRecords:
    """Некорректные записи пропускаются, но не удаляются"""

    def test_unparseable_booking_is_skipped(self, state):
        broken = make_booking(7, None, 2)
        broken.raw_start_time = 'не дата'
        broken_id = state.bookings.insert(broken)
        state.bookings.insert(make_booking(8, NOW - timedelta(hours=3), 1))

        report = run_sweep(state, NOW)

        assert broken_id in report.skipped
        assert not state.bookings.get(broken_id).completed
        assert len(report.completed) == 1
        assert state.registry.get(7).status == STATUS_AVAILABLE

    def test_zero_duration_is_skipped(self, state):
        booking_id = state.bookings.insert(make_booking(9, NOW - timedelta(hours=1), 0))

        report = run_sweep(state, NOW)

        assert booking_id in report.skipped
        assert state.account.total_hours == 0


class TestAdministrativeOverride:
    """Ручной статус администратора всегда главнее"""

    def test_maintenance_wins_over_booking(self, coordinator):
        coordinator.create_booking(1, NOW - timedelta(minutes=10), 2)
        assert statuses(coordinator)[1] == STATUS_OCCUPIED

        coordinator.set_administrative_status(1, STATUS_MAINTENANCE)
        assert statuses(coordinator)[1] == STATUS_MAINTENANCE

        coordinator.set_administrative_status(1, STATUS_AVAILABLE)
        assert statuses(coordinator)[1] == STATUS_OCCUPIED

    def test_manual_occupied_survives_sweep(self, coordinator, clock):
        coordinator.set_administrative_status(2, STATUS_OCCUPIED)
        clock.advance(hours=1)
        coordinator.refresh_statuses()

        pc = coordinator.get_resource(2)
        assert pc.status == STATUS_OCCUPIED
        assert pc.last_used == datetime(2026, 3, 10, 14, 30)


class TestReportMerge:
    """Отчёты двух проходов одной операции складываются"""

    def test_merge(self):
        first = SweepReport(now=NOW, rating_gain=15, hours_gain=1, level=1,
                            status_changes={1: ('occupied', 'available')}, skipped=[7])
        second = SweepReport(now=NOW, rating_gain=20, hours_gain=2, level=1,
                             status_changes={1: ('available', 'occupied'), 2: ('available', 'booked')},
                             skipped=[7, 9])

        first.merge(second)

        assert first.rating_gain == 35
        assert first.hours_gain == 3
        assert first.status_changes == {2: ('available', 'booked')}
        assert first.skipped == [7, 9]

"""
test_coordinator.py - Тесты координатора бронирований

Покрывают:
1. Создание брони: оплата, фиксация цены, отказы без частичных изменений
2. Отмену брони и правило возврата за 2 часа
3. Ручной статус, досрочное завершение сессии
4. Магазин, турниры, баланс
5. Запросы: время до освобождения, свободные слоты
6. Откат транзакции при непредвиденной ошибке
"""
import copy
import pytest
from datetime import timedelta, timezone

from database.models import STATUS_AVAILABLE, STATUS_MAINTENANCE
from services.coordinator import ReservationCoordinator
from services.errors import ResourceNotFound

from conftest import NOW, statuses


class TestCreateBooking:
    """Создание брони"""

    def test_success_debits_balance(self, coordinator):
        result = coordinator.create_booking(1, NOW + timedelta(hours=1), 2)

        assert result.success
        assert result.data['price'] == 600
        assert result.data['balance'] == 9400
        assert coordinator.get_account().balance == 9400
        [booking] = coordinator.list_bookings()
        assert booking.id == result.data['booking_id']
        assert booking.pc_name == 'PC-01'
        assert booking.created_at == NOW

    def test_price_is_frozen(self, coordinator, state):
        """Цена брони не пересчитывается при смене тарифа"""
        result = coordinator.create_booking(11, NOW + timedelta(hours=1), 3)
        state.registry.get(11).price_per_hour = 999

        booking = state.bookings.get(result.data['booking_id'])
        assert booking.price == 600

    def test_iso_string_start(self, coordinator):
        result = coordinator.create_booking(21, (NOW + timedelta(hours=1)).isoformat(), 1)

        assert result.success
        assert coordinator.list_bookings()[0].start_time == NOW + timedelta(hours=1)

    def test_aware_datetime_start(self, coordinator):
        aware_start = (NOW + timedelta(days=2)).replace(tzinfo=timezone.utc)

        result = coordinator.create_booking(21, aware_start, 1)

        assert result.success
        [booking] = coordinator.list_bookings()
        assert booking.start_time.tzinfo is None
        assert booking.start_time == aware_start.astimezone().replace(tzinfo=None)

    def test_insufficient_funds_changes_nothing(self, coordinator, state):
        """Неудачная бронь не меняет ни баланс, ни журнал"""
        state.account.balance = 100
        account_before = copy.deepcopy(coordinator.get_account())
        statuses_before = statuses(coordinator)

        result = coordinator.create_booking(1, NOW + timedelta(hours=1), 1)

        assert not result.success
        assert result.code == 'insufficient_funds'
        assert coordinator.get_account() == account_before
        assert coordinator.list_bookings() == []
        assert statuses(coordinator) == statuses_before

    def test_unknown_resource(self, coordinator):
        result = coordinator.create_booking(31, NOW + timedelta(hours=1), 1)

        assert not result.success
        assert result.code == 'resource_not_found'

    @pytest.mark.parametrize("start_offset,duration", [
        (timedelta(hours=1), 0),
        (timedelta(hours=1), -2),
        (timedelta(hours=1), 7),
        (timedelta(hours=-3), 2),
    ])
    def test_invalid_window(self, coordinator, start_offset, duration):
        result = coordinator.create_booking(1, NOW + start_offset, duration)

        assert not result.success
        assert result.code == 'invalid_time_window'
        assert coordinator.get_account().balance == 10000

    def test_unparseable_date(self, coordinator):
        result = coordinator.create_booking(1, 'завтра вечером', 1)

        assert not result.success
        assert result.code == 'invalid_time_window'

    def test_wrong_argument_type_raises(self, coordinator):
        """Неверный тип аргумента - ошибка программиста"""
        with pytest.raises(TypeError):
            coordinator.create_booking(1, NOW, "2")
        with pytest.raises(TypeError):
            coordinator.create_booking("1", NOW, 2)
        with pytest.raises(TypeError):
            coordinator.create_booking(1, 12345, 2)

    def test_overlap_is_conflict(self, coordinator):
        coordinator.create_booking(1, NOW + timedelta(hours=1), 2)

        result = coordinator.create_booking(1, NOW + timedelta(hours=2), 2)

        assert not result.success
        assert result.code == 'scheduling_conflict'
        assert len(coordinator.list_bookings()) == 1
        assert coordinator.get_account().balance == 9400

    def test_back_to_back_allowed(self, coordinator):
        coordinator.create_booking(1, NOW + timedelta(hours=1), 2)

        result = coordinator.create_booking(1, NOW + timedelta(hours=3), 1)

        assert result.success

    def test_same_window_other_pc_allowed(self, coordinator):
        coordinator.create_booking(1, NOW + timedelta(hours=1), 2)

        assert coordinator.create_booking(2, NOW + timedelta(hours=1), 2).success

    def test_overlap_allowed_when_configured(self, state, clock):
        coordinator = ReservationCoordinator(state, clock=clock, allow_overlap=True)
        coordinator.create_booking(1, NOW + timedelta(hours=1), 2)

        assert coordinator.create_booking(1, NOW + timedelta(hours=2), 2).success

    def test_maintenance_pc_refused(self, coordinator):
        coordinator.set_administrative_status(5, STATUS_MAINTENANCE)

        result = coordinator.create_booking(5, NOW + timedelta(hours=1), 1)

        assert result.code == 'scheduling_conflict'

    def test_balance_never_negative(self, coordinator, state):
        state.account.balance = 650
        assert coordinator.create_booking(1, NOW + timedelta(hours=1), 2).success
        assert not coordinator.create_booking(2, NOW + timedelta(hours=1), 1).success
        assert coordinator.get_account().balance == 50


class TestCancelBooking:
    """Отмена брони и возврат средств"""

    def test_exactly_two_hours_refunds(self, coordinator):
        booking_id = coordinator.create_booking(1, NOW + timedelta(hours=2), 2).data['booking_id']
        assert coordinator.get_account().balance == 9400

        result = coordinator.cancel_booking(booking_id)

        assert result.success
        assert result.data['refunded']
        assert result.data['refund_amount'] == 600
        assert coordinator.get_account().balance == 10000
        assert coordinator.list_bookings() == []

    def test_just_under_two_hours_no_refund(self, coordinator):
        booking_id = coordinator.create_booking(1, NOW + timedelta(minutes=119), 2).data['booking_id']

        result = coordinator.cancel_booking(booking_id)

        assert result.success
        assert not result.data['refunded']
        assert result.data['refund_amount'] == 0
        assert coordinator.get_account().balance == 9400
        assert coordinator.list_bookings() == []

    def test_started_booking_removed_without_refund(self, coordinator, clock):
        booking_id = coordinator.create_booking(1, NOW + timedelta(hours=1), 2).data['booking_id']
        clock.advance(hours=1, minutes=30)
        coordinator.refresh_statuses()
        assert statuses(coordinator)[1] != STATUS_AVAILABLE

        result = coordinator.cancel_booking(booking_id)

        assert result.success
        assert result.data['refund_amount'] == 0
        assert result.message == "Бронирование отменено"
        assert statuses(coordinator)[1] == STATUS_AVAILABLE

    def test_unknown_booking(self, coordinator):
        result = coordinator.cancel_booking(42)

        assert not result.success
        assert result.code == 'booking_not_found'

    def test_completed_booking_cannot_be_cancelled(self, coordinator, clock):
        booking_id = coordinator.create_booking(1, NOW, 1).data['booking_id']
        clock.advance(hours=2)
        coordinator.refresh_statuses()

        result = coordinator.cancel_booking(booking_id)

        assert result.code == 'booking_completed'
        assert len(coordinator.list_bookings()) == 1

    def test_elapsed_booking_completed_before_cancel(self, coordinator, clock):
        """Закончившаяся бронь завершается до отмены, даже без прохода планировщика"""
        booking_id = coordinator.create_booking(1, NOW, 3).data['booking_id']
        clock.advance(hours=3, seconds=30)

        result = coordinator.cancel_booking(booking_id)

        assert result.code == 'booking_completed'
        account = coordinator.get_account()
        assert account.rating == 1500 + 25
        assert account.total_hours == 3
        [booking] = coordinator.list_bookings()
        assert booking.completed

        # Повторный проход не начисляет награду ещё раз
        coordinator.refresh_statuses()
        assert coordinator.get_account().rating == 1525


class TestAdministrativeStatus:

    def test_unknown_status_raises(self, coordinator):
        with pytest.raises(ValueError):
            coordinator.set_administrative_status(1, 'booked')

    def test_unknown_pc(self, coordinator):
        result = coordinator.set_administrative_status(99, STATUS_MAINTENANCE)

        assert result.code == 'resource_not_found'

    def test_release_clears_override(self, coordinator):
        coordinator.set_administrative_status(3, STATUS_MAINTENANCE)
        result = coordinator.set_administrative_status(3, STATUS_AVAILABLE)

        assert result.data['admin_status'] is None
        assert statuses(coordinator)[3] == STATUS_AVAILABLE


class TestCompleteSession:
    """Досрочное завершение сессии"""

    def test_started_session_completes_with_reward(self, coordinator, clock):
        booking_id = coordinator.create_booking(1, NOW, 2).data['booking_id']
        clock.advance(minutes=45)

        result = coordinator.complete_session(booking_id)

        assert result.success
        assert result.data['rating_gain'] == 20
        assert coordinator.get_account().total_hours == 2
        assert statuses(coordinator)[1] == STATUS_AVAILABLE

    def test_future_session_refused(self, coordinator):
        booking_id = coordinator.create_booking(1, NOW + timedelta(hours=3), 2).data['booking_id']

        assert coordinator.complete_session(booking_id).code == 'invalid_time_window'

    def test_reward_applied_once(self, coordinator, clock):
        booking_id = coordinator.create_booking(1, NOW, 2).data['booking_id']
        coordinator.complete_session(booking_id)
        clock.advance(hours=3)
        coordinator.refresh_statuses()

        assert coordinator.complete_session(booking_id).code == 'booking_completed'
        assert coordinator.get_account().rating == 1520


class TestBalance:

    def test_adjust_clamps_at_zero(self, coordinator):
        result = coordinator.adjust_balance(-20000)

        assert result.data['balance'] == 0
        assert coordinator.get_account().balance == 0

    def test_top_up(self, coordinator):
        assert coordinator.adjust_balance(500).data['balance'] == 10500


class TestShop:
    """Корзина и покупка"""

    def test_purchase_cart(self, coordinator):
        coordinator.add_to_cart(1)
        coordinator.add_to_cart(2)
        coordinator.add_to_cart(1)

        result = coordinator.purchase_cart()

        assert result.success
        assert result.data['total'] == 500
        assert coordinator.get_account().balance == 9500
        assert coordinator.get_cart() == []
        stock = {item.id: item.stock for item in coordinator.list_shop_items()}
        assert stock[1] == 98
        assert stock[2] == 49
        [purchase] = coordinator.list_purchases()
        assert purchase.total == 500
        assert len(purchase.items) == 3

    def test_insufficient_funds_keeps_cart_and_stock(self, coordinator, state):
        state.account.balance = 100
        coordinator.add_to_cart(4)

        result = coordinator.purchase_cart()

        assert result.code == 'insufficient_funds'
        assert len(coordinator.get_cart()) == 1
        assert state.shop.get(4).stock == 20
        assert coordinator.list_purchases() == []

    def test_stock_limit(self, coordinator):
        result = coordinator.purchase_cart([8, 8, 8, 8])

        assert result.code == 'capacity_exceeded'
        assert coordinator.get_account().balance == 10000

    def test_add_to_cart_respects_stock(self, coordinator):
        for _ in range(3):
            assert coordinator.add_to_cart(8).success

        assert coordinator.add_to_cart(8).code == 'capacity_exceeded'

    def test_empty_cart(self, coordinator):
        assert coordinator.purchase_cart().code == 'empty_cart'

    def test_unknown_item(self, coordinator):
        assert coordinator.purchase_cart([100]).code == 'shop_item_not_found'

    def test_remove_and_clear(self, coordinator):
        cart_id = coordinator.add_to_cart(1).data['cart_id']
        coordinator.add_to_cart(3)

        assert coordinator.remove_from_cart(cart_id).success
        assert [c.item_id for c in coordinator.get_cart()] == [3]
        assert coordinator.remove_from_cart(cart_id).code == 'cart_item_not_found'

        coordinator.clear_cart()
        assert coordinator.get_cart() == []


class TestTournaments:
    """Регистрация на турниры"""

    def test_join(self, coordinator):
        result = coordinator.join_tournament(1)

        assert result.success
        assert result.data['participants'] == 13
        assert coordinator.get_account().balance == 9500
        assert coordinator.is_registered(1)

    def test_join_twice(self, coordinator):
        coordinator.join_tournament(1)

        assert coordinator.join_tournament(1).code == 'already_registered'
        assert coordinator.get_account().balance == 9500

    def test_full_tournament(self, coordinator, state):
        state.tournaments.get(3).participants = 32

        result = coordinator.join_tournament(3)

        assert result.code == 'capacity_exceeded'
        assert coordinator.get_account().balance == 10000

    def test_insufficient_funds(self, coordinator, state):
        state.account.balance = 200

        result = coordinator.join_tournament(2)

        assert result.code == 'insufficient_funds'
        assert state.tournaments.get(2).participants == 8

    def test_unknown_tournament(self, coordinator):
        assert coordinator.join_tournament(9).code == 'tournament_not_found'


class TestQueries:
    """Запросы к состоянию"""

    def test_free_time(self, coordinator):
        coordinator.create_booking(1, NOW + timedelta(minutes=30), 2)

        assert coordinator.get_resource_free_time(1) == timedelta(hours=2, minutes=30)
        assert coordinator.get_resource_free_time(2) is None

    def test_free_time_unknown_pc(self, coordinator):
        with pytest.raises(ResourceNotFound):
            coordinator.get_resource_free_time(0)

    def test_available_slots_skip_booked_hours(self, coordinator):
        # NOW = 14:30, ближайший слот 15:00
        coordinator.create_booking(1, NOW.replace(hour=15, minute=0), 2)

        slots = coordinator.get_available_slots(1, 1)

        hours = [s.hour for s in slots[:3]]
        assert hours == [17, 18, 19]
        assert len(coordinator.get_available_slots(2, 1)) == 24

    def test_queries_return_copies(self, coordinator, state):
        account = coordinator.get_account()
        account.balance = 1

        assert state.account.balance == 10000

    def test_completed_sessions_reported_with_next_operation(self, coordinator, clock):
        coordinator.create_booking(1, NOW, 1)
        clock.advance(hours=2)

        result = coordinator.adjust_balance(0)

        [session] = result.data['completed_sessions']
        assert session.rating_gain == 15


class TestTransactions:
    """Откат при непредвиденной ошибке"""

    def test_unexpected_error_rolls_back(self, coordinator, state, monkeypatch):
        def broken_insert(booking):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(state.bookings, 'insert', broken_insert)

        with pytest.raises(RuntimeError):
            coordinator.create_booking(1, NOW + timedelta(hours=1), 2)

        assert coordinator.get_account().balance == 10000

"""
Координатор бронирований

Единственная точка записи в состояние клуба. Все операции выполняются
под одной блокировкой: изменение баланса, журнала броней и статусов ПК
либо применяется целиком, либо откатывается. После каждой операции
запускается проход движка статусов.
"""
import copy
import logging
import threading
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from config import settings
from database.models import (
    Account, Booking, CartItem, ChatRequest, OnlineUser, Purchase, ShopItem,
    Tournament, Workstation,
    ADMIN_STATUSES, STATUS_AVAILABLE, STATUS_MAINTENANCE, STATUS_OCCUPIED
)
from database.repository import ClubState
from services.errors import (
    BookingAlreadyCompleted, CapacityExceeded, CartItemNotFound, EmptyCart,
    EngineError, AlreadyRegistered, InvalidTimeWindow, SchedulingConflict
)
from services.matchmaking import open_blind_date, open_chat_request
from services.status_engine import (
    SweepReport, booking_window, find_holding_booking, is_active, run_sweep,
    session_reward
)
from utils.time_utils import format_datetime, hourly_slots, hours_until, parse_instant

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """Результат операции для слоя представления"""
    success: bool
    message: str
    code: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, **data) -> 'OperationResult':
        return cls(success=True, message=message, data=data)

    @classmethod
    def failure(cls, error: EngineError) -> 'OperationResult':
        return cls(success=False, message=error.message, code=error.code)


def _check_int(name: str, value):
    """Проверка аргумента-числа: неверный тип - ошибка программиста"""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} должен быть int, получено {type(value).__name__}")


def _windows_overlap(start_a: datetime, end_a: datetime,
                     start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and end_a > start_b


class ReservationCoordinator:
    """Атомарные операции над балансом, бронями и статусами ПК"""

    def __init__(self, state: ClubState, clock: Callable[[], datetime] = None,
                 allow_overlap: bool = None, refund_lead_hours: float = None,
                 min_booking_hours: int = None, max_booking_hours: int = None):
        self._state = state
        self._clock = clock or datetime.now
        self._lock = threading.RLock()
        self.allow_overlap = settings.ALLOW_OVERLAPPING_BOOKINGS if allow_overlap is None else allow_overlap
        self.refund_lead_hours = settings.REFUND_LEAD_HOURS if refund_lead_hours is None else refund_lead_hours
        self.min_booking_hours = settings.MIN_BOOKING_HOURS if min_booking_hours is None else min_booking_hours
        self.max_booking_hours = settings.MAX_BOOKING_HOURS if max_booking_hours is None else max_booking_hours
        self._next_cart_id = 1
        self.last_sweep: Optional[SweepReport] = None

    def now(self) -> datetime:
        return self._clock()

    def _sweep(self, now: datetime) -> SweepReport:
        """Проход движка с откатом при ошибке"""
        snapshot = self._state.snapshot()
        try:
            return run_sweep(self._state, now)
        except Exception:
            self._state.restore(snapshot)
            raise

    @contextmanager
    def _transaction(self):
        """
        Транзакция над состоянием клуба: при любом исключении
        состояние возвращается к снимку, сделанному до операции.
        Прошедшие сессии завершаются до операции и с ней не откатываются.
        """
        with self._lock:
            now = self._clock()
            self.last_sweep = self._sweep(now)
            snapshot = self._state.snapshot()
            try:
                yield now
                self.last_sweep.merge(run_sweep(self._state, now))
            except Exception:
                self._state.restore(snapshot)
                raise

    def _execute(self, action: str, operation: Callable[..., OperationResult], *args) -> OperationResult:
        """Запуск операции в транзакции с переводом бизнес-ошибок в результат"""
        try:
            with self._transaction() as now:
                result = operation(now, *args)
        except EngineError as e:
            logger.info(f"{action}: отказ ({e.code}) - {e.message}")
            return OperationResult.failure(e)

        if self.last_sweep is not None and self.last_sweep.completed:
            result.data['completed_sessions'] = list(self.last_sweep.completed)
        logger.info(f"{action}: {result.message}")
        return result

    # ------------------------------------------------------------------
    # Бронирования
    # ------------------------------------------------------------------

    def create_booking(self, pc_id: int, start_time: Union[datetime, str],
                       duration: int) -> OperationResult:
        """Бронирование ПК: списание оплаты и запись брони"""
        _check_int('pc_id', pc_id)
        _check_int('duration', duration)
        if not isinstance(start_time, (datetime, str)):
            raise TypeError(f"start_time должен быть datetime или str, получено {type(start_time).__name__}")
        return self._execute('Бронирование', self._create_booking, pc_id, start_time, duration)

    def _create_booking(self, now: datetime, pc_id: int, start_time, duration: int) -> OperationResult:
        state = self._state
        workstation = state.registry.get(pc_id)

        start = parse_instant(start_time)
        if start is None:
            raise InvalidTimeWindow(f"Не удалось разобрать дату: {start_time!r}")
        if duration <= 0:
            raise InvalidTimeWindow("Длительность должна быть положительной")
        if not self.min_booking_hours <= duration <= self.max_booking_hours:
            raise InvalidTimeWindow(
                f"Длительность от {self.min_booking_hours} до {self.max_booking_hours} ч"
            )
        end = start + timedelta(hours=duration)
        if end <= now:
            raise InvalidTimeWindow("Время бронирования уже прошло")

        if workstation.admin_status == STATUS_MAINTENANCE:
            raise SchedulingConflict(f"{workstation.name} на обслуживании")

        if not self.allow_overlap:
            for other in state.bookings.find_by_resource(pc_id):
                if not is_active(other, now):
                    continue
                other_start, other_end = other.window
                if _windows_overlap(start, end, other_start, other_end):
                    raise SchedulingConflict(
                        f"{workstation.name} уже забронирован с {format_datetime(other_start)} "
                        f"на {other.duration} ч"
                    )

        # Цена фиксируется в момент бронирования
        price = workstation.price_per_hour * duration
        balance = state.accounts.debit(price)

        booking_id = state.bookings.insert(Booking(
            id=None,
            pc_id=pc_id,
            pc_name=workstation.name,
            start_time=start,
            duration=duration,
            price=price,
            created_at=now
        ))

        return OperationResult.ok(
            f"{workstation.name} забронирован на {format_datetime(start)}, {duration} ч, {price}₽",
            booking_id=booking_id,
            price=price,
            balance=balance
        )

    def cancel_booking(self, booking_id: int) -> OperationResult:
        """Отмена брони с возвратом по правилу 2 часов"""
        _check_int('booking_id', booking_id)
        return self._execute('Отмена брони', self._cancel_booking, booking_id)

    def _cancel_booking(self, now: datetime, booking_id: int) -> OperationResult:
        state = self._state
        booking = state.bookings.get(booking_id)
        if booking.completed:
            raise BookingAlreadyCompleted(f"Сессия #{booking_id} уже завершена, отмена невозможна")

        # Бронь с некорректной датой считается начавшейся
        lead_hours = hours_until(booking.start_time, now) if booking.start_time is not None else 0.0

        refund_amount = 0
        if lead_hours >= self.refund_lead_hours:
            refund_amount = booking.price
            message = f"Бронирование отменено. Возвращено {refund_amount}₽"
        elif lead_hours > 0:
            message = (
                f"Бронирование отменено. Деньги не возвращаются "
                f"(менее {self.refund_lead_hours} часов до начала)"
            )
        else:
            message = "Бронирование отменено"

        state.bookings.remove(booking_id)
        if refund_amount:
            state.accounts.credit(refund_amount)

        return OperationResult.ok(
            message,
            refunded=refund_amount > 0,
            refund_amount=refund_amount,
            lead_hours=lead_hours,
            balance=state.account.balance
        )

    def complete_session(self, booking_id: int) -> OperationResult:
        """Досрочное завершение начавшейся сессии с начислением рейтинга"""
        _check_int('booking_id', booking_id)
        return self._execute('Завершение сессии', self._complete_session, booking_id)

    def _complete_session(self, now: datetime, booking_id: int) -> OperationResult:
        state = self._state
        booking = state.bookings.get(booking_id)
        if booking.completed:
            raise BookingAlreadyCompleted(f"Сессия #{booking_id} уже завершена")
        window = booking_window(booking)
        if window is None:
            raise InvalidTimeWindow(f"У брони #{booking_id} некорректное время")
        if window[0] > now:
            raise InvalidTimeWindow("Сессия ещё не началась")

        state.bookings.mark_completed(booking_id, now)
        rating_gain = session_reward(booking.duration)
        level = state.accounts.apply_progression(rating_gain, booking.duration)

        return OperationResult.ok(
            f"Сессия завершена! +{rating_gain} рейтинга, +{booking.duration} часов",
            rating_gain=rating_gain,
            hours_gain=booking.duration,
            level=level
        )

    def set_administrative_status(self, pc_id: int, status: str) -> OperationResult:
        """Ручной статус ПК; available снимает ручной статус"""
        _check_int('pc_id', pc_id)
        if status not in ADMIN_STATUSES:
            raise ValueError(f"Недопустимый статус: {status!r}")
        return self._execute('Статус ПК', self._set_administrative_status, pc_id, status)

    def _set_administrative_status(self, now: datetime, pc_id: int, status: str) -> OperationResult:
        workstation = self._state.registry.get(pc_id)
        if status == STATUS_AVAILABLE:
            workstation.admin_status = None
        else:
            workstation.admin_status = status
            if status == STATUS_OCCUPIED:
                workstation.last_used = now
        return OperationResult.ok(
            f"{workstation.name}: статус «{status}»",
            pc_id=pc_id,
            admin_status=workstation.admin_status
        )

    # ------------------------------------------------------------------
    # Баланс, магазин, турниры
    # ------------------------------------------------------------------

    def adjust_balance(self, amount: int) -> OperationResult:
        """Пополнение (или списание) баланса, баланс не уходит в минус"""
        _check_int('amount', amount)
        return self._execute('Баланс', self._adjust_balance, amount)

    def _adjust_balance(self, now: datetime, amount: int) -> OperationResult:
        balance = self._state.accounts.adjust(amount)
        return OperationResult.ok(f"Баланс: {balance}₽", balance=balance)

    def add_to_cart(self, item_id: int) -> OperationResult:
        _check_int('item_id', item_id)
        return self._execute('Корзина', self._add_to_cart, item_id)

    def _add_to_cart(self, now: datetime, item_id: int) -> OperationResult:
        state = self._state
        item = state.shop.get(item_id)
        in_cart = sum(1 for c in state.cart if c.item_id == item_id)
        if item.stock <= in_cart:
            raise CapacityExceeded(f"{item.name}: товар закончился")

        cart_item = CartItem(cart_id=self._next_cart_id, item_id=item.id, name=item.name, price=item.price)
        self._next_cart_id += 1
        state.cart.append(cart_item)
        return OperationResult.ok(f"{item.name} добавлен в корзину", cart_id=cart_item.cart_id)

    def remove_from_cart(self, cart_id: int) -> OperationResult:
        _check_int('cart_id', cart_id)
        return self._execute('Корзина', self._remove_from_cart, cart_id)

    def _remove_from_cart(self, now: datetime, cart_id: int) -> OperationResult:
        state = self._state
        for cart_item in state.cart:
            if cart_item.cart_id == cart_id:
                state.cart.remove(cart_item)
                return OperationResult.ok(f"{cart_item.name} удалён из корзины")
        raise CartItemNotFound()

    def clear_cart(self) -> OperationResult:
        return self._execute('Корзина', self._clear_cart)

    def _clear_cart(self, now: datetime) -> OperationResult:
        self._state.cart = []
        return OperationResult.ok("Корзина очищена")

    def purchase_cart(self, item_ids: Optional[List[int]] = None) -> OperationResult:
        """
        Покупка товаров. Без аргумента покупается текущая корзина,
        иначе - переданный список ID товаров (повтор ID - несколько штук).
        """
        if item_ids is not None:
            for item_id in item_ids:
                _check_int('item_id', item_id)
        return self._execute('Покупка', self._purchase_cart, item_ids)

    def _purchase_cart(self, now: datetime, item_ids: Optional[List[int]]) -> OperationResult:
        state = self._state
        if item_ids is None:
            items = list(state.cart)
        else:
            items = []
            for item_id in item_ids:
                item = state.shop.get(item_id)
                items.append(CartItem(cart_id=0, item_id=item.id, name=item.name, price=item.price))

        if not items:
            raise EmptyCart()

        quantities = Counter(c.item_id for c in items)
        for item_id, quantity in quantities.items():
            item = state.shop.get(item_id)
            if item.stock < quantity:
                raise CapacityExceeded(f"{item.name}: в наличии {item.stock} шт.")

        total = sum(c.price for c in items)
        balance = state.accounts.debit(total)

        for item_id, quantity in quantities.items():
            state.shop.get(item_id).stock -= quantity
        purchase = state.shop.record_purchase(items, total, now)
        if item_ids is None:
            state.cart = []

        return OperationResult.ok(
            "Покупка успешно завершена!",
            purchase_id=purchase.id,
            total=total,
            balance=balance
        )

    def join_tournament(self, tournament_id: int) -> OperationResult:
        """Регистрация на турнир с оплатой взноса"""
        _check_int('tournament_id', tournament_id)
        return self._execute('Турнир', self._join_tournament, tournament_id)

    def _join_tournament(self, now: datetime, tournament_id: int) -> OperationResult:
        state = self._state
        tournament = state.tournaments.get(tournament_id)
        if state.tournaments.is_registered(tournament_id):
            raise AlreadyRegistered(f"Вы уже зарегистрированы на {tournament.name}")
        if tournament.status != 'open' or tournament.is_full:
            raise CapacityExceeded(
                f"{tournament.name}: мест нет ({tournament.participants}/{tournament.max_participants})"
            )

        balance = state.accounts.debit(tournament.entry_fee)
        registration = state.tournaments.create_registration(tournament, now)

        return OperationResult.ok(
            "Вы успешно зарегистрированы на турнир!",
            registration_id=registration.id,
            participants=tournament.participants,
            balance=balance
        )

    # ------------------------------------------------------------------
    # Социальные функции
    # ------------------------------------------------------------------

    def send_chat_request(self, user_id: int) -> OperationResult:
        _check_int('user_id', user_id)
        return self._execute('Запрос в чат', self._send_chat_request, user_id)

    def _send_chat_request(self, now: datetime, user_id: int) -> OperationResult:
        state = self._state
        target = state.social.get_user(user_id)
        request = open_chat_request(state.social, state.account, target, now)
        return OperationResult.ok(
            f"Запрос на чат отправлен пользователю {target.name}!",
            request_id=request.id
        )

    def find_match(self) -> OperationResult:
        """Blind Date: подбор пары со скидкой"""
        return self._execute('Blind Date', self._find_match)

    def _find_match(self, now: datetime) -> OperationResult:
        state = self._state
        request = open_blind_date(state.social, state.account, now)
        state.account.notifications['blind_date'] = True
        return OperationResult.ok(
            f"Найдена пара: {request.to_user_name}! Запрос на чат отправлен. "
            f"Скидка -{request.discount}% на {request.duration} часа при подтверждении.",
            request_id=request.id,
            pair_id=request.to_user_id,
            discount=request.discount,
            duration=request.duration
        )

    def toggle_dead_hour_notifications(self) -> OperationResult:
        return self._execute('Уведомления', self._toggle_dead_hour)

    def _toggle_dead_hour(self, now: datetime) -> OperationResult:
        notifications = self._state.account.notifications
        notifications['dead_hour'] = not notifications.get('dead_hour', False)
        if notifications['dead_hour']:
            message = "Уведомления Dead Hour включены!"
        else:
            message = "Уведомления Dead Hour выключены."
        return OperationResult.ok(message, enabled=notifications['dead_hour'])

    # ------------------------------------------------------------------
    # Проход движка и запросы
    # ------------------------------------------------------------------

    def refresh_statuses(self) -> SweepReport:
        """Проход движка статусов (вызывается планировщиком)"""
        with self._lock:
            self.last_sweep = self._sweep(self._clock())
            return self.last_sweep

    def list_resources(self) -> List[Workstation]:
        with self._lock:
            return copy.deepcopy(self._state.registry.all())

    def get_resource(self, pc_id: int) -> Workstation:
        with self._lock:
            return copy.deepcopy(self._state.registry.get(pc_id))

    def list_bookings(self, pc_id: Optional[int] = None, include_completed: bool = True) -> List[Booking]:
        with self._lock:
            return copy.deepcopy(self._state.bookings.list(pc_id=pc_id, include_completed=include_completed))

    def get_account(self) -> Account:
        with self._lock:
            return copy.deepcopy(self._state.account)

    def get_resource_free_time(self, pc_id: int) -> Optional[timedelta]:
        """Сколько осталось до окончания брони, которая держит ПК; None - ПК свободен"""
        with self._lock:
            self._state.registry.get(pc_id)
            now = self._clock()
            holding = find_holding_booking(self._state.bookings.find_by_resource(pc_id), now)
            if holding is None:
                return None
            return holding.end_time - now

    def get_available_slots(self, pc_id: int, duration: int) -> List[datetime]:
        """Ближайшие часовые слоты, в которые ПК свободен на всю длительность"""
        _check_int('duration', duration)
        if duration <= 0:
            raise ValueError("Длительность должна быть положительной")
        with self._lock:
            self._state.registry.get(pc_id)
            now = self._clock()
            windows = [
                b.window for b in self._state.bookings.find_by_resource(pc_id)
                if is_active(b, now)
            ]
            slots = []
            for slot in hourly_slots(now):
                slot_end = slot + timedelta(hours=duration)
                if not any(_windows_overlap(slot, slot_end, s, e) for s, e in windows):
                    slots.append(slot)
            return slots

    def list_shop_items(self) -> List[ShopItem]:
        with self._lock:
            return copy.deepcopy(self._state.shop.all())

    def get_cart(self) -> List[CartItem]:
        with self._lock:
            return copy.deepcopy(self._state.cart)

    def list_purchases(self) -> List[Purchase]:
        with self._lock:
            return copy.deepcopy(self._state.shop.purchases)

    def list_tournaments(self) -> List[Tournament]:
        with self._lock:
            return copy.deepcopy(self._state.tournaments.all())

    def is_registered(self, tournament_id: int) -> bool:
        with self._lock:
            return self._state.tournaments.is_registered(tournament_id)

    def list_online_users(self) -> List[OnlineUser]:
        with self._lock:
            return copy.deepcopy(self._state.social.online_users())

    def list_chat_requests(self) -> List[ChatRequest]:
        with self._lock:
            return copy.deepcopy(self._state.social.chat_requests)

    def export_state(self) -> ClubState:
        """Копия состояния для сохранения снимка"""
        with self._lock:
            return self._state.snapshot()

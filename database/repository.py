"""
Репозитории для работы с данными клуба

Всё состояние хранится в памяти; единственный владелец на запись -
координатор бронирований (services/coordinator.py).
"""
import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from config import settings
from database.models import (
    Account, Booking, CartItem, ChatRequest, HallPosition, OnlineUser,
    PCSpecs, Purchase, ShopItem, Tournament, TournamentRegistration, Workstation
)
from services.errors import (
    BookingNotFound, InsufficientFunds, ResourceNotFound, ShopItemNotFound,
    TournamentNotFound, UserNotFound
)

logger = logging.getLogger(__name__)


# Конфигурации ПК по ценовым категориям
TIER_SPECS = (
    PCSpecs(cpu='Intel i9-13900K', gpu='RTX 4090', ram='64GB DDR5', monitor='240Hz 4K'),
    PCSpecs(cpu='Intel i7-13700K', gpu='RTX 4070', ram='32GB DDR5', monitor='144Hz 2K'),
    PCSpecs(cpu='Intel i5-13600K', gpu='RTX 4060', ram='16GB DDR5', monitor='144Hz 2K'),
)


def create_default_workstations(count: int = None, columns: int = None) -> List[Workstation]:
    """Зал по умолчанию: 30 ПК в три категории, по 5 в ряду"""
    count = settings.PC_COUNT if count is None else count
    columns = settings.HALL_COLUMNS if columns is None else columns

    workstations = []
    for i in range(count):
        tier = settings.tier_of(i)
        workstations.append(Workstation(
            id=i + 1,
            name=f"PC-{i + 1:02d}",
            specs=copy.copy(TIER_SPECS[tier]),
            price_per_hour=settings.TIER_PRICES[tier],
            position=HallPosition(row=i // columns + 1, col=i % columns + 1),
        ))
    return workstations


def create_default_shop_items() -> List[ShopItem]:
    """Ассортимент магазина по умолчанию"""
    return [
        ShopItem(id=1, name='Кола', price=150, category='drinks', stock=100, image='🥤'),
        ShopItem(id=2, name='Энергетик', price=200, category='drinks', stock=50, image='⚡'),
        ShopItem(id=3, name='Чипсы', price=180, category='snacks', stock=80, image='🍿'),
        ShopItem(id=4, name='Пицца', price=500, category='food', stock=20, image='🍕'),
        ShopItem(id=5, name='Футболка', price=1500, category='merch', stock=15, image='👕'),
        ShopItem(id=6, name='Пополнение Steam', price=1000, category='gaming', stock=999, image='🎮'),
        ShopItem(id=7, name='Мышь Razer', price=5000, category='devices', stock=5, image='🖱️'),
        ShopItem(id=8, name='Клавиатура', price=6000, category='devices', stock=3, image='⌨️'),
    ]


def create_default_tournaments(now: datetime) -> List[Tournament]:
    """Расписание турниров по умолчанию"""
    return [
        Tournament(id=1, name='CS2 Weekly', game='Counter-Strike 2', entry_fee=500, prize=5000,
                   date=now + timedelta(days=3), participants=12, max_participants=16),
        Tournament(id=2, name='Valorant Open', game='Valorant', entry_fee=300, prize=3000,
                   date=now + timedelta(days=7), participants=8, max_participants=16),
        Tournament(id=3, name='Dota 2 Championship', game='Dota 2', entry_fee=1000, prize=15000,
                   date=now + timedelta(days=14), participants=24, max_participants=32),
    ]


def create_default_online_users() -> List[OnlineUser]:
    """Игроки онлайн по умолчанию"""
    return [
        OnlineUser(id=1, name='ProGamer', rating=2500, game='CS2', avatar='🎮'),
        OnlineUser(id=2, name='NoobSlayer', rating=1800, game='Valorant', avatar='⚔️'),
        OnlineUser(id=3, name='CyberNinja', rating=2200, game='Dota 2', avatar='🥷'),
        OnlineUser(id=4, name='GamerGirl', rating=2100, game='Valorant', avatar='👾'),
        OnlineUser(id=5, name='ElitePlayer', rating=2800, game='CS2', avatar='🔥'),
    ]


class ResourceRegistry:
    """Реестр ПК: набор фиксируется при старте и больше не меняется"""

    def __init__(self, workstations: Iterable[Workstation]):
        self._workstations: Dict[int, Workstation] = {ws.id: ws for ws in workstations}

    def get(self, pc_id: int) -> Workstation:
        """Получение ПК по ID"""
        workstation = self._workstations.get(pc_id)
        if workstation is None:
            raise ResourceNotFound(f"ПК #{pc_id} не найден")
        return workstation

    def all(self) -> List[Workstation]:
        """Все ПК в порядке номеров"""
        return list(self._workstations.values())

    def __contains__(self, pc_id: int) -> bool:
        return pc_id in self._workstations

    def __len__(self) -> int:
        return len(self._workstations)


class BookingLedger:
    """Журнал бронирований

    Пересечения интервалов здесь не проверяются - это решает координатор.
    """

    def __init__(self, bookings: Iterable[Booking] = ()):
        self._bookings: Dict[int, Booking] = {}
        self._next_id = 1
        for booking in bookings:
            self.insert(booking)

    def insert(self, booking: Booking) -> int:
        """Добавление бронирования, возвращает его ID"""
        if booking.id is None:
            booking.id = self._next_id
        # Продолжаем нумерацию после загруженных записей
        self._next_id = max(self._next_id, booking.id + 1)
        self._bookings[booking.id] = booking
        return booking.id

    def get(self, booking_id: int) -> Booking:
        """Получение бронирования по ID"""
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise BookingNotFound(f"Бронирование #{booking_id} не найдено")
        return booking

    def remove(self, booking_id: int) -> Booking:
        """Удаление бронирования из журнала"""
        booking = self.get(booking_id)
        del self._bookings[booking_id]
        return booking

    def mark_completed(self, booking_id: int, completed_at: datetime) -> Booking:
        """Отметка о завершении сессии"""
        booking = self.get(booking_id)
        booking.completed = True
        booking.completed_at = completed_at
        return booking

    def list(self, pc_id: Optional[int] = None, include_completed: bool = True) -> List[Booking]:
        """Бронирования в порядке создания"""
        return [
            b for b in self._bookings.values()
            if (pc_id is None or b.pc_id == pc_id) and (include_completed or not b.completed)
        ]

    def find_by_resource(self, pc_id: int) -> List[Booking]:
        """Все бронирования конкретного ПК"""
        return self.list(pc_id=pc_id)

    def __len__(self) -> int:
        return len(self._bookings)


class AccountLedger:
    """Баланс и прогрессия посетителя"""

    def __init__(self, account: Account):
        self.account = account

    def debit(self, amount: int) -> int:
        """Списание средств"""
        if amount < 0:
            raise ValueError("Сумма списания не может быть отрицательной")
        if self.account.balance < amount:
            raise InsufficientFunds(
                f"Недостаточно средств: нужно {amount}₽, на балансе {self.account.balance}₽"
            )
        self.account.balance = max(0, self.account.balance - amount)
        return self.account.balance

    def credit(self, amount: int) -> int:
        """Зачисление средств"""
        if amount < 0:
            raise ValueError("Сумма зачисления не может быть отрицательной")
        self.account.balance = max(0, self.account.balance + amount)
        return self.account.balance

    def adjust(self, amount: int) -> int:
        """Изменение баланса на сумму со знаком, баланс не опускается ниже нуля"""
        self.account.balance = max(0, self.account.balance + amount)
        return self.account.balance

    def apply_progression(self, rating_gain: int, hours_gain: int) -> int:
        """Начисление рейтинга и часов за завершённые сессии, возвращает уровень"""
        if rating_gain < 0 or hours_gain < 0:
            raise ValueError("Прогрессия не может уменьшаться")
        self.account.rating += rating_gain
        self.account.total_hours += hours_gain
        return self.account.level


class ShopRepository:
    """Товары магазина и история покупок"""

    def __init__(self, items: Iterable[ShopItem]):
        self._items: Dict[int, ShopItem] = {item.id: item for item in items}
        self.purchases: List[Purchase] = []
        self._next_purchase_id = 1

    def get(self, item_id: int) -> ShopItem:
        item = self._items.get(item_id)
        if item is None:
            raise ShopItemNotFound(f"Товар #{item_id} не найден")
        return item

    def all(self) -> List[ShopItem]:
        return list(self._items.values())

    def record_purchase(self, items: List[CartItem], total: int, created_at: datetime) -> Purchase:
        """Сохранение покупки в историю"""
        purchase = Purchase(
            id=self._next_purchase_id,
            items=items,
            total=total,
            created_at=created_at
        )
        self._next_purchase_id += 1
        self.purchases.append(purchase)
        return purchase


class TournamentRepository:
    """Турниры и регистрации на них"""

    def __init__(self, tournaments: Iterable[Tournament]):
        self._tournaments: Dict[int, Tournament] = {t.id: t for t in tournaments}
        self.registrations: List[TournamentRegistration] = []
        self._next_registration_id = 1

    def get(self, tournament_id: int) -> Tournament:
        tournament = self._tournaments.get(tournament_id)
        if tournament is None:
            raise TournamentNotFound(f"Турнир #{tournament_id} не найден")
        return tournament

    def all(self) -> List[Tournament]:
        return list(self._tournaments.values())

    def is_registered(self, tournament_id: int) -> bool:
        """Есть ли активная регистрация на турнир"""
        return any(
            r.tournament_id == tournament_id and r.status == 'active'
            for r in self.registrations
        )

    def create_registration(self, tournament: Tournament, created_at: datetime) -> TournamentRegistration:
        """Регистрация участника: занимает место в турнире"""
        registration = TournamentRegistration(
            id=self._next_registration_id,
            tournament_id=tournament.id,
            entry_fee=tournament.entry_fee,
            created_at=created_at
        )
        tournament.participants += 1
        self._next_registration_id += 1
        self.registrations.append(registration)
        return registration

    def add_registration(self, registration: TournamentRegistration):
        """Загрузка сохранённой регистрации (число участников не меняется)"""
        self.get(registration.tournament_id)
        self.registrations.append(registration)
        self._next_registration_id = max(self._next_registration_id, registration.id + 1)


class SocialRepository:
    """Игроки онлайн и журнал запросов в чат"""

    def __init__(self, users: Iterable[OnlineUser]):
        self._users: Dict[int, OnlineUser] = {u.id: u for u in users}
        self.chat_requests: List[ChatRequest] = []
        self._next_request_id = 1

    def get_user(self, user_id: int) -> OnlineUser:
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFound(f"Пользователь #{user_id} не найден")
        return user

    def online_users(self) -> List[OnlineUser]:
        return [u for u in self._users.values() if u.status == 'online']

    def add_user(self, user: OnlineUser):
        self._users[user.id] = user

    def has_pending_request(self, to_user_id: int) -> bool:
        return any(
            r.to_user_id == to_user_id and r.status == 'pending'
            for r in self.chat_requests
        )

    def append_request(self, request: ChatRequest) -> ChatRequest:
        request.id = self._next_request_id
        self._next_request_id += 1
        self.chat_requests.append(request)
        return request


@dataclass
class ClubState:
    """Всё изменяемое состояние клуба

    Явный объект контекста вместо глобального хранилища: его получает
    координатор и передаёт в движок статусов.
    """
    registry: ResourceRegistry
    bookings: BookingLedger
    accounts: AccountLedger
    shop: ShopRepository
    tournaments: TournamentRepository
    social: SocialRepository
    cart: List[CartItem] = field(default_factory=list)

    def snapshot(self) -> 'ClubState':
        """Полная копия для отката транзакции"""
        return copy.deepcopy(self)

    def restore(self, snapshot: 'ClubState'):
        """Возврат к сохранённой копии"""
        self.registry = snapshot.registry
        self.bookings = snapshot.bookings
        self.accounts = snapshot.accounts
        self.shop = snapshot.shop
        self.tournaments = snapshot.tournaments
        self.social = snapshot.social
        self.cart = snapshot.cart

    @property
    def account(self) -> Account:
        return self.accounts.account


def create_club_state(now: Optional[datetime] = None, balance: Optional[int] = None,
                      name: str = 'Геймер') -> ClubState:
    """Начальное состояние клуба"""
    now = now or datetime.now()
    account = Account(
        name=name,
        balance=settings.INITIAL_BALANCE if balance is None else balance,
        rating=settings.INITIAL_RATING,
        games=['CS2', 'Valorant', 'Dota 2'],
        hours_per_level=settings.HOURS_PER_LEVEL,
    )
    state = ClubState(
        registry=ResourceRegistry(create_default_workstations()),
        bookings=BookingLedger(),
        accounts=AccountLedger(account),
        shop=ShopRepository(create_default_shop_items()),
        tournaments=TournamentRepository(create_default_tournaments(now)),
        social=SocialRepository(create_default_online_users()),
    )
    logger.info(f"Создано состояние клуба: {len(state.registry)} ПК, баланс {account.balance}₽")
    return state

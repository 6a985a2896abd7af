"""
Модели данных клуба
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple


# Статусы ПК
STATUS_AVAILABLE = 'available'
STATUS_BOOKED = 'booked'
STATUS_OCCUPIED = 'occupied'
STATUS_MAINTENANCE = 'maintenance'

PC_STATUSES = (STATUS_AVAILABLE, STATUS_BOOKED, STATUS_OCCUPIED, STATUS_MAINTENANCE)

# Статусы, которые администратор может выставить вручную
ADMIN_STATUSES = (STATUS_OCCUPIED, STATUS_MAINTENANCE, STATUS_AVAILABLE)

# Типы запросов в чат
REQUEST_CHAT = 'chat'
REQUEST_BLIND_DATE = 'blind_date'


@dataclass
class PCSpecs:
    """Характеристики ПК"""
    cpu: str
    gpu: str
    ram: str
    monitor: str


@dataclass
class HallPosition:
    """Место ПК на схеме зала"""
    row: int
    col: int


@dataclass
class Workstation:
    """Модель игрового ПК"""
    id: int
    name: str
    specs: PCSpecs
    price_per_hour: int
    position: HallPosition
    status: str = STATUS_AVAILABLE
    admin_status: Optional[str] = None  # ручной статус администратора, перекрывает брони
    last_used: Optional[datetime] = None


@dataclass
class Booking:
    """Модель бронирования"""
    id: Optional[int]
    pc_id: int
    start_time: Optional[datetime]  # None, если дату не удалось разобрать
    duration: int
    price: int
    created_at: datetime
    pc_name: str = ''
    completed: bool = False
    completed_at: Optional[datetime] = None
    raw_start_time: Optional[str] = None

    @property
    def end_time(self) -> Optional[datetime]:
        """Окончание брони"""
        if self.start_time is None or not isinstance(self.duration, int) or self.duration <= 0:
            return None
        return self.start_time + timedelta(hours=self.duration)

    @property
    def window(self) -> Optional[Tuple[datetime, datetime]]:
        """Интервал [начало, конец) или None для некорректной записи"""
        end_time = self.end_time
        if end_time is None:
            return None
        return self.start_time, end_time


@dataclass
class Account:
    """Аккаунт посетителя"""
    name: str
    balance: int
    rating: int = 1500
    total_hours: int = 0
    avatar: str = '🎮'
    games: List[str] = field(default_factory=list)
    notifications: Dict[str, bool] = field(
        default_factory=lambda: {'dead_hour': False, 'blind_date': False}
    )
    hours_per_level: int = 100

    @property
    def level(self) -> int:
        """Уровень: каждые 100 часов +1"""
        return self.total_hours // self.hours_per_level + 1


@dataclass
class ShopItem:
    """Товар магазина"""
    id: int
    name: str
    price: int
    category: str
    stock: int
    image: str = ''


@dataclass
class CartItem:
    """Позиция в корзине"""
    cart_id: int
    item_id: int
    name: str
    price: int


@dataclass
class Purchase:
    """Запись в истории покупок"""
    id: int
    items: List[CartItem]
    total: int
    created_at: datetime


@dataclass
class Tournament:
    """Модель турнира"""
    id: int
    name: str
    game: str
    entry_fee: int
    prize: int
    date: datetime
    participants: int
    max_participants: int
    status: str = 'open'

    @property
    def is_full(self) -> bool:
        return self.participants >= self.max_participants


@dataclass
class TournamentRegistration:
    """Модель регистрации на турнир"""
    id: Optional[int]
    tournament_id: int
    entry_fee: int
    created_at: datetime
    status: str = 'active'


@dataclass
class OnlineUser:
    """Игрок онлайн"""
    id: int
    name: str
    rating: int
    game: str
    avatar: str = ''
    status: str = 'online'


@dataclass
class ChatRequest:
    """Запрос на чат (в том числе Blind Date)"""
    id: Optional[int]
    to_user_id: int
    to_user_name: str
    from_user_name: str
    created_at: datetime
    kind: str = REQUEST_CHAT
    status: str = 'pending'
    discount: int = 0
    duration: int = 0

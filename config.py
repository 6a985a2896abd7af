"""
Конфигурация проекта
"""
import os
from dataclasses import dataclass
from typing import List, Tuple


@dataclass
class Settings:
    """Настройки приложения"""
    # Telegram
    BOT_TOKEN: str = os.getenv('BOT_TOKEN', '')
    ADMIN_IDS: List[int] = None

    # База данных (снимки состояния)
    DB_PATH: str = os.getenv('DB_PATH', 'data/cyber_club.db')

    # Зал
    PC_COUNT: int = 30
    HALL_COLUMNS: int = 5
    TIER_BOUNDS: Tuple[int, int] = (10, 20)       # ПК 1-10, 11-20, 21-30
    TIER_PRICES: Tuple[int, int, int] = (300, 200, 150)

    # Аккаунт и прогрессия
    INITIAL_BALANCE: int = int(os.getenv('INITIAL_BALANCE', '10000'))
    INITIAL_RATING: int = 1500
    HOURS_PER_LEVEL: int = 100
    SESSION_BASE_RATING: int = 10
    SESSION_RATING_PER_HOUR: int = 5

    # Бизнес-правила бронирования
    MIN_BOOKING_HOURS: int = 1
    MAX_BOOKING_HOURS: int = 6
    BOOKING_SLOTS_AHEAD: int = 24
    REFUND_LEAD_HOURS: int = 2
    ALLOW_OVERLAPPING_BOOKINGS: bool = os.getenv('ALLOW_OVERLAPPING_BOOKINGS', '') == '1'

    # Периодические задачи
    STATUS_REFRESH_SECONDS: int = 60
    SNAPSHOT_INTERVAL_MINUTES: int = 5

    # Подбор пары
    MATCH_RATING_GAP: int = 300
    BLIND_DATE_DISCOUNT: int = 50
    BLIND_DATE_HOURS: int = 3

    def __post_init__(self):
        """Инициализация после создания объекта"""
        # Парсинг ADMIN_IDS из переменной окружения
        if self.ADMIN_IDS is None:
            admin_ids_str = os.getenv('ADMIN_IDS', '')
            if admin_ids_str:
                self.ADMIN_IDS = [int(id.strip()) for id in admin_ids_str.split(',')]
            else:
                self.ADMIN_IDS = []

    def validate(self):
        """Проверка настроек, обязательных для запуска бота"""
        if not self.BOT_TOKEN:
            raise ValueError("BOT_TOKEN не установлен")

    def is_admin(self, user_id: int) -> bool:
        """Проверка, является ли пользователь администратором"""
        return user_id in self.ADMIN_IDS

    def tier_of(self, index: int) -> int:
        """Номер ценовой категории для ПК с порядковым индексом (с нуля)"""
        for tier, bound in enumerate(self.TIER_BOUNDS):
            if index < bound:
                return tier
        return len(self.TIER_BOUNDS)


# Глобальный экземпляр настроек
settings = Settings()

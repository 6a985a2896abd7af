"""
Утилиты для работы со временем и расписанием
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Union

from config import settings

logger = logging.getLogger(__name__)


def parse_instant(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Разбор момента времени из ISO-строки
    Возвращает None, если значение разобрать не удалось
    """
    if isinstance(value, datetime):
        moment = value
    elif not isinstance(value, str) or not value:
        return None
    else:
        try:
            # Python < 3.11 не понимает суффикс Z
            moment = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            logger.warning(f"Не удалось разобрать дату: {value!r}")
            return None
    # Внутри клуба всё время локальное и без часового пояса
    if moment.tzinfo is not None:
        moment = moment.astimezone().replace(tzinfo=None)
    return moment


def hours_until(moment: datetime, now: datetime) -> float:
    """Сколько часов осталось до момента (отрицательно, если он прошёл)"""
    return (moment - now).total_seconds() / 3600


def hourly_slots(now: datetime, count: int = None) -> List[datetime]:
    """
    Ближайшие слоты для бронирования: каждый целый час,
    начиная со следующего
    """
    count = settings.BOOKING_SLOTS_AHEAD if count is None else count
    current = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    return [current + timedelta(hours=i) for i in range(count)]


def format_datetime(dt: Optional[datetime]) -> str:
    """Форматирование datetime для отображения"""
    if dt is None:
        return "дата не указана"
    return dt.strftime("%d.%m.%Y %H:%M")


def format_time(dt: datetime) -> str:
    """Форматирование времени"""
    return dt.strftime("%H:%M")


def format_date(dt: datetime, now: Optional[datetime] = None) -> str:
    """Форматирование даты"""
    weekdays = ['Пн', 'Вт', 'Ср', 'Чт', 'Пт', 'Сб', 'Вс']
    weekday = weekdays[dt.weekday()]

    today = (now or datetime.now()).date()
    if dt.date() == today:
        return f"Сегодня ({weekday})"
    elif dt.date() == today + timedelta(days=1):
        return f"Завтра ({weekday})"
    else:
        return f"{dt.strftime('%d.%m')} ({weekday})"


def format_duration(delta: timedelta) -> str:
    """Оставшееся время в виде «2ч 5м» или «5м»"""
    total_minutes = int(delta.total_seconds() // 60)
    if total_minutes <= 0:
        return "меньше минуты"
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}ч {minutes}м"
    return f"{minutes}м"


def format_hours(hours: int) -> str:
    """Склонение слова «час»"""
    if hours % 10 == 1 and hours % 100 != 11:
        return f"{hours} час"
    if hours % 10 in (2, 3, 4) and hours % 100 not in (12, 13, 14):
        return f"{hours} часа"
    return f"{hours} часов"

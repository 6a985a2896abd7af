"""
Движок статусов ПК

Статус каждого ПК выводится из журнала бронирований и текущего времени.
Перед выводом статусов завершаются прошедшие сессии и начисляется
прогрессия, поэтому закончившаяся бронь никогда не держит ПК занятым.
Повторный запуск без новых броней и без течения времени ничего не меняет.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from config import settings
from database.models import (
    Booking, Workstation,
    STATUS_AVAILABLE, STATUS_BOOKED, STATUS_OCCUPIED
)

logger = logging.getLogger(__name__)


@dataclass
class CompletedSession:
    """Сессия, завершённая при проходе движка"""
    booking_id: int
    pc_id: int
    duration: int
    rating_gain: int


@dataclass
class SweepReport:
    """Результат прохода движка"""
    now: datetime
    completed: List[CompletedSession] = field(default_factory=list)
    rating_gain: int = 0
    hours_gain: int = 0
    level: Optional[int] = None
    status_changes: Dict[int, Tuple[str, str]] = field(default_factory=dict)
    skipped: List[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.completed or self.status_changes)

    def merge(self, other: 'SweepReport'):
        """Добавление результатов следующего прохода"""
        self.now = other.now
        self.completed.extend(other.completed)
        self.rating_gain += other.rating_gain
        self.hours_gain += other.hours_gain
        if other.level is not None:
            self.level = other.level
        for pc_id, (old, new) in other.status_changes.items():
            first = self.status_changes.get(pc_id, (old, new))[0]
            if first == new:
                self.status_changes.pop(pc_id, None)
            else:
                self.status_changes[pc_id] = (first, new)
        for booking_id in other.skipped:
            if booking_id not in self.skipped:
                self.skipped.append(booking_id)


def session_reward(duration: int) -> int:
    """Рейтинг за сессию: базовые 10 + 5 за каждый час"""
    return settings.SESSION_BASE_RATING + settings.SESSION_RATING_PER_HOUR * duration


def booking_window(booking: Booking) -> Optional[Tuple[datetime, datetime]]:
    """Интервал брони или None для некорректной записи"""
    try:
        return booking.window
    except (TypeError, ValueError, OverflowError):
        return None


def is_active(booking: Booking, now: datetime) -> bool:
    """Незавершённая бронь, конец которой ещё не наступил"""
    if booking.completed:
        return False
    window = booking_window(booking)
    return window is not None and window[1] > now


def find_holding_booking(bookings: Iterable[Booking], now: datetime) -> Optional[Booking]:
    """
    Бронь, определяющая статус ПК: активная с самым ранним началом.
    При равном начале побеждает созданная раньше.
    """
    active = [b for b in bookings if is_active(b, now)]
    if not active:
        return None
    # sorted устойчива: порядок вставки сохраняется при равном начале
    return sorted(active, key=lambda b: b.start_time)[0]


def derive_status(workstation: Workstation, bookings: Iterable[Booking], now: datetime) -> str:
    """
    Статус одного ПК

    Ручной статус администратора всегда главнее броней.
    """
    if workstation.admin_status is not None:
        return workstation.admin_status

    holding = find_holding_booking(bookings, now)
    if holding is None:
        return STATUS_AVAILABLE

    start_time, end_time = holding.window
    if start_time <= now < end_time:
        return STATUS_OCCUPIED
    return STATUS_BOOKED


def group_by_resource(bookings: Iterable[Booking]) -> Dict[int, List[Booking]]:
    """Индекс ПК -> его бронирования (в порядке создания)"""
    index: Dict[int, List[Booking]] = {}
    for booking in bookings:
        index.setdefault(booking.pc_id, []).append(booking)
    return index


def derive_statuses(workstations: Iterable[Workstation], bookings: Iterable[Booking],
                    now: datetime) -> Dict[int, str]:
    """Статусы всех ПК без изменения состояния"""
    index = group_by_resource(bookings)
    return {
        ws.id: derive_status(ws, index.get(ws.id, []), now)
        for ws in workstations
    }


def complete_elapsed_sessions(state, now: datetime, report: SweepReport):
    """Завершение прошедших сессий с однократным начислением прогрессии"""
    for booking in state.bookings.list(include_completed=False):
        window = booking_window(booking)
        if window is None:
            if booking.id not in report.skipped:
                report.skipped.append(booking.id)
            logger.warning(
                f"Бронь #{booking.id} пропущена: некорректное время "
                f"{booking.raw_start_time or booking.start_time!r}, длительность {booking.duration!r}"
            )
            continue

        if window[1] > now:
            continue

        state.bookings.mark_completed(booking.id, now)
        gain = session_reward(booking.duration)
        report.completed.append(CompletedSession(
            booking_id=booking.id,
            pc_id=booking.pc_id,
            duration=booking.duration,
            rating_gain=gain
        ))
        report.rating_gain += gain
        report.hours_gain += booking.duration

    if report.completed:
        report.level = state.accounts.apply_progression(report.rating_gain, report.hours_gain)
        logger.info(
            f"Завершено сессий: {len(report.completed)}, "
            f"+{report.rating_gain} рейтинга, +{report.hours_gain} ч, уровень {report.level}"
        )


def run_sweep(state, now: datetime) -> SweepReport:
    """
    Проход движка: сначала автозавершение сессий, затем пересчёт
    статусов всех ПК. Вызывается координатором после каждой операции
    и планировщиком раз в минуту.
    """
    report = SweepReport(now=now)

    complete_elapsed_sessions(state, now, report)

    workstations = state.registry.all()
    statuses = derive_statuses(workstations, state.bookings.list(include_completed=False), now)
    for workstation in workstations:
        new_status = statuses[workstation.id]
        if new_status == workstation.status:
            continue
        report.status_changes[workstation.id] = (workstation.status, new_status)
        if new_status == STATUS_OCCUPIED:
            workstation.last_used = now
        workstation.status = new_status

    if report.status_changes:
        logger.debug(f"Изменились статусы ПК: {report.status_changes}")

    return report

"""
Планировщик периодических задач
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import settings
from database.database import save_snapshot
from services.coordinator import ReservationCoordinator

logger = logging.getLogger(__name__)


async def refresh_statuses_job(coordinator: ReservationCoordinator):
    """Задача пересчёта статусов ПК и завершения прошедших сессий"""
    try:
        report = coordinator.refresh_statuses()
        if report.completed:
            logger.info(f"Автоматически завершено сессий: {len(report.completed)}")
    except Exception as e:
        logger.error(f"Ошибка при пересчёте статусов: {e}", exc_info=True)


async def save_snapshot_job(coordinator: ReservationCoordinator, db_path: Optional[str] = None):
    """Задача сохранения снимка состояния"""
    try:
        save_snapshot(coordinator.export_state(), db_path)
    except Exception as e:
        logger.error(f"Ошибка при сохранении снимка: {e}", exc_info=True)


async def start_scheduler(coordinator: ReservationCoordinator,
                          db_path: Optional[str] = None) -> AsyncIOScheduler:
    """Запуск планировщика задач"""
    scheduler = AsyncIOScheduler()

    # Пересчёт статусов раз в минуту
    scheduler.add_job(
        refresh_statuses_job,
        trigger=IntervalTrigger(seconds=settings.STATUS_REFRESH_SECONDS),
        args=[coordinator],
        id='refresh_statuses',
        name='Пересчёт статусов ПК',
        replace_existing=True
    )

    scheduler.add_job(
        save_snapshot_job,
        trigger=IntervalTrigger(minutes=settings.SNAPSHOT_INTERVAL_MINUTES),
        args=[coordinator, db_path],
        id='save_snapshot',
        name='Сохранение снимка состояния',
        replace_existing=True
    )

    scheduler.start()
    logger.info("Планировщик задач запущен")

    return scheduler

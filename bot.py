"""
Главный файл Telegram-бота кибер-клуба
"""
import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage

from config import settings
from database.database import init_db, load_snapshot, save_snapshot
from database.repository import create_club_state
from handlers import user_handlers, admin_handlers, shop_handlers, social_handlers, tournament_handlers
from middlewares.status_refresh import StatusRefreshMiddleware
from services.coordinator import ReservationCoordinator
from utils.scheduler import start_scheduler

# Настройка логирования
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    """Основная функция запуска бота"""
    logger.info("Запуск бота...")
    settings.validate()

    # Состояние клуба и последний снимок
    init_db()
    state = create_club_state()
    if load_snapshot(state):
        logger.info("Состояние восстановлено из снимка")
    else:
        logger.info("Снимок не найден, создано новое состояние")

    coordinator = ReservationCoordinator(state)
    coordinator.refresh_statuses()

    # Создание бота и диспетчера; координатор передаётся в хендлеры по имени аргумента
    bot = Bot(token=settings.BOT_TOKEN)
    storage = MemoryStorage()
    dp = Dispatcher(storage=storage, coordinator=coordinator)

    # Пересчёт статусов перед каждым обновлением
    dp.message.middleware(StatusRefreshMiddleware())
    dp.callback_query.middleware(StatusRefreshMiddleware())

    # Регистрация роутеров
    dp.include_router(user_handlers.router)
    dp.include_router(shop_handlers.router)
    dp.include_router(tournament_handlers.router)
    dp.include_router(social_handlers.router)
    dp.include_router(admin_handlers.router)

    # Запуск планировщика
    scheduler = await start_scheduler(coordinator)

    try:
        logger.info("Бот успешно запущен")
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        scheduler.shutdown()
        save_snapshot(coordinator.export_state())
        await bot.session.close()
        logger.info("Бот остановлен")


if __name__ == '__main__':
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Бот остановлен пользователем")
    except Exception as e:
        logger.error(f"Критическая ошибка: {e}", exc_info=True)

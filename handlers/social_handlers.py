"""
Обработчики социальных функций: Blind Date и запросы в чат
"""
import logging

from aiogram import Router, F
from aiogram.filters import Command
from aiogram.types import Message

from services.coordinator import ReservationCoordinator

logger = logging.getLogger(__name__)
router = Router()


@router.message(F.text == "🎲 Blind Date")
async def blind_date(message: Message, coordinator: ReservationCoordinator):
    """Подбор пары для совместной игры"""
    result = coordinator.find_match()
    prefix = "💘" if result.success else "😔"
    await message.answer(f"{prefix} {result.message}")


@router.message(Command("online"))
async def online_users(message: Message, coordinator: ReservationCoordinator):
    """Команда /online - игроки онлайн"""
    users = coordinator.list_online_users()
    if not users:
        await message.answer("Сейчас никого нет онлайн")
        return

    text = "🟢 Сейчас онлайн:\n\n"
    for user in users:
        text += f"{user.avatar} {user.name} - {user.game}, рейтинг {user.rating} (/chat {user.id})\n"
    await message.answer(text)


@router.message(Command("chat"))
async def chat_request(message: Message, coordinator: ReservationCoordinator):
    """Команда /chat <id> - запрос в чат"""
    parts = message.text.split()
    if len(parts) != 2 or not parts[1].isdigit():
        await message.answer("Использование: /chat <ID игрока>")
        return

    result = coordinator.send_chat_request(int(parts[1]))
    await message.answer(("✅ " if result.success else "⚠️ ") + result.message)


@router.message(Command("deadhour"))
async def dead_hour(message: Message, coordinator: ReservationCoordinator):
    """Команда /deadhour - уведомления о бесплатном часе"""
    result = coordinator.toggle_dead_hour_notifications()
    await message.answer(("🔔 " if result.data['enabled'] else "🔕 ") + result.message)

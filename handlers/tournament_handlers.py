"""
Обработчики регистрации на турниры
"""
import logging

from aiogram import Router, F
from aiogram.types import Message, CallbackQuery

from config import settings
from services.coordinator import ReservationCoordinator
from keyboards.keyboards import get_tournaments_keyboard
from utils.time_utils import format_datetime

logger = logging.getLogger(__name__)
router = Router()


@router.message(F.text == "🏆 Турниры")
async def show_tournaments(message: Message, coordinator: ReservationCoordinator):
    """Список турниров"""
    tournaments = coordinator.list_tournaments()

    text = "🏆 Турниры\n\n"
    for t in tournaments:
        mark = "✅ " if coordinator.is_registered(t.id) else ""
        text += (
            f"{mark}{t.name} ({t.game})\n"
            f"   📅 {format_datetime(t.date)}\n"
            f"   💰 Взнос {t.entry_fee}₽, призовой фонд {t.prize}₽\n"
            f"   👥 {t.participants}/{t.max_participants}\n\n"
        )
    text += "Нажмите на турнир, чтобы зарегистрироваться:"

    await message.answer(text, reply_markup=get_tournaments_keyboard(tournaments))


@router.callback_query(F.data.startswith("join_tournament:"))
async def join_tournament(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Регистрация на турнир"""
    tournament_id = int(callback.data.split(":")[1])
    result = coordinator.join_tournament(tournament_id)

    if not result.success:
        await callback.answer(f"❌ {result.message}", show_alert=True)
        return

    admin_text = (
        f"🏆 Новая регистрация на турнир #{tournament_id}\n\n"
        f"💬 @{callback.from_user.username or 'без username'}\n"
        f"📊 Участников: {result.data['participants']}"
    )
    for admin_id in settings.ADMIN_IDS:
        try:
            await callback.bot.send_message(admin_id, admin_text)
        except Exception as e:
            logger.error(f"Не удалось отправить уведомление админу {admin_id}: {e}")

    await callback.message.edit_text(
        f"✅ {result.message}\n\n"
        f"📊 Вы участник #{result.data['participants']}\n"
        f"💳 Остаток на балансе: {result.data['balance']}₽",
        reply_markup=get_tournaments_keyboard(coordinator.list_tournaments())
    )
    await callback.answer()

"""
Обработчики команд администраторов
"""
import logging
from datetime import timedelta

from aiogram import Router, F
from aiogram.filters import Command
from aiogram.types import Message, CallbackQuery

from config import settings
from database.models import ADMIN_STATUSES
from services.coordinator import ReservationCoordinator
from keyboards.keyboards import get_admin_keyboard, get_admin_status_keyboard, get_pcs_keyboard
from utils.time_utils import format_datetime

logger = logging.getLogger(__name__)
router = Router()


def is_admin(user_id: int) -> bool:
    """Проверка прав администратора"""
    return settings.is_admin(user_id)


@router.message(F.text == "⚙️ Админ-панель")
async def admin_panel(message: Message):
    """Открытие админ-панели"""
    if not is_admin(message.from_user.id):
        await message.answer("⚠️ У вас нет доступа к админ-панели")
        return

    await message.answer(
        "⚙️ Админ-панель\n\nВыберите действие:",
        reply_markup=get_admin_keyboard()
    )


@router.message(Command("today"))
async def cmd_today(message: Message, coordinator: ReservationCoordinator):
    """Команда /today - список броней на сегодня"""
    if not is_admin(message.from_user.id):
        await message.answer("⚠️ У вас нет доступа к этой команде")
        return

    await show_today_bookings(message, coordinator)


@router.callback_query(F.data == "admin_today")
async def callback_today(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Callback для броней на сегодня"""
    if not is_admin(callback.from_user.id):
        await callback.answer("⚠️ У вас нет доступа", show_alert=True)
        return

    await show_today_bookings(callback.message, coordinator)
    await callback.answer()


async def show_today_bookings(message: Message, coordinator: ReservationCoordinator):
    """Показать брони на сегодня"""
    today_start = coordinator.now().replace(hour=0, minute=0, second=0, microsecond=0)
    today_end = today_start + timedelta(days=1)
    bookings = [
        b for b in coordinator.list_bookings()
        if b.start_time is not None and today_start <= b.start_time < today_end
    ]

    if not bookings:
        await message.answer("📋 На сегодня нет бронирований")
        return

    parts = []
    current_part = "📋 Бронирования на сегодня:\n\n"
    for booking in sorted(bookings, key=lambda b: b.start_time):
        booking_text = (
            f"🔹 Бронь #{booking.id}{' ✔️' if booking.completed else ''}\n"
            f"   🕐 {format_datetime(booking.start_time)}\n"
            f"   ⏱ {booking.duration} ч\n"
            f"   🖥 {booking.pc_name}\n"
            f"   💰 {booking.price}₽\n\n"
        )
        # Разбиение длинного сообщения
        if len(current_part) + len(booking_text) > 4000:
            parts.append(current_part)
            current_part = booking_text
        else:
            current_part += booking_text
    parts.append(current_part + f"Всего броней: {len(bookings)}")

    for part in parts:
        await message.answer(part)


@router.callback_query(F.data == "admin_status")
async def callback_status(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Выбор ПК для ручного статуса"""
    if not is_admin(callback.from_user.id):
        await callback.answer("⚠️ У вас нет доступа", show_alert=True)
        return

    await callback.message.edit_text(
        "🔧 Выберите ПК:",
        reply_markup=get_pcs_keyboard(coordinator.list_resources(), prefix="admin_pc")
    )
    await callback.answer()


@router.callback_query(F.data.startswith("admin_pc:"))
async def callback_admin_pc(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Выбор статуса для ПК"""
    if not is_admin(callback.from_user.id):
        await callback.answer("⚠️ У вас нет доступа", show_alert=True)
        return

    pc_id = int(callback.data.split(":")[1])
    ws = coordinator.get_resource(pc_id)
    await callback.message.edit_text(
        f"🖥 {ws.name}: сейчас «{ws.status}»\n\nВыберите статус:",
        reply_markup=get_admin_status_keyboard(pc_id)
    )
    await callback.answer()


@router.callback_query(F.data.startswith("set_status:"))
async def callback_set_status(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Установка ручного статуса ПК"""
    if not is_admin(callback.from_user.id):
        await callback.answer("⚠️ У вас нет доступа", show_alert=True)
        return

    _, pc_id, status = callback.data.split(":")
    result = coordinator.set_administrative_status(int(pc_id), status)
    await callback.message.edit_text(("✅ " if result.success else "⚠️ ") + result.message)
    await callback.answer()


@router.message(Command("status"))
async def cmd_status(message: Message, coordinator: ReservationCoordinator):
    """Команда /status <pc_id> <status> - ручной статус ПК"""
    if not is_admin(message.from_user.id):
        await message.answer("⚠️ У вас нет доступа к этой команде")
        return

    parts = message.text.split()
    if len(parts) != 3 or not parts[1].isdigit() or parts[2] not in ADMIN_STATUSES:
        await message.answer(
            "⚠️ Использование: /status <id> <статус>\n\n"
            f"Статусы: {', '.join(ADMIN_STATUSES)}\n"
            "Пример: /status 7 maintenance"
        )
        return

    result = coordinator.set_administrative_status(int(parts[1]), parts[2])
    await message.answer(("✅ " if result.success else "⚠️ ") + result.message)


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, coordinator: ReservationCoordinator):
    """Команда /cancel <id> - отмена брони администратором"""
    if not is_admin(message.from_user.id):
        await message.answer("⚠️ У вас нет доступа к этой команде")
        return

    parts = message.text.split()
    if len(parts) < 2:
        await message.answer(
            "⚠️ Использование: /cancel <id>\n\n"
            "Пример: /cancel 123"
        )
        return

    try:
        booking_id = int(parts[1])
    except ValueError:
        await message.answer("⚠️ ID брони должен быть числом")
        return

    result = coordinator.cancel_booking(booking_id)
    if not result.success:
        await message.answer(f"⚠️ {result.message}")
        return

    await message.answer(f"✅ Бронирование #{booking_id}: {result.message}")

    # Уведомление других администраторов
    admin_text = (
        f"ℹ️ Администратор @{message.from_user.username or 'без username'} "
        f"отменил бронирование #{booking_id}"
    )
    for admin_id in settings.ADMIN_IDS:
        if admin_id != message.from_user.id:
            try:
                await message.bot.send_message(admin_id, admin_text)
            except Exception as e:
                logger.error(f"Не удалось уведомить админа {admin_id}: {e}")


@router.message(Command("topup"))
async def cmd_topup(message: Message, coordinator: ReservationCoordinator):
    """Команда /topup <сумма> - пополнение баланса на кассе"""
    if not is_admin(message.from_user.id):
        await message.answer("⚠️ У вас нет доступа к этой команде")
        return

    parts = message.text.split()
    try:
        amount = int(parts[1])
    except (IndexError, ValueError):
        await message.answer("⚠️ Использование: /topup <сумма>")
        return

    result = coordinator.adjust_balance(amount)
    await message.answer(f"💳 {result.message}")

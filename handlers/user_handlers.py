"""
Обработчики команд и сообщений посетителя
"""
import logging
from datetime import datetime

from aiogram import Router, F
from aiogram.filters import Command
from aiogram.types import Message, CallbackQuery
from aiogram.fsm.context import FSMContext

from config import settings
from database.models import STATUS_MAINTENANCE
from services.coordinator import ReservationCoordinator
from states.booking_states import BookingStates
from keyboards.keyboards import (
    STATUS_ICONS, get_main_menu_keyboard, get_pcs_keyboard, get_duration_keyboard,
    get_times_keyboard, get_confirmation_keyboard, get_bookings_keyboard,
    get_booking_actions_keyboard
)
from utils.time_utils import format_datetime, format_duration

logger = logging.getLogger(__name__)
router = Router()

NO_BOOKINGS_TEXT = "В клубе пока нет активных бронирований."


def bookings_header(count: int) -> str:
    """Заголовок списка броней: аккаунт клуба общий, поэтому список общий"""
    return f"📋 Бронирования клуба (общий аккаунт), активных: {count}"


@router.message(Command("start"))
async def cmd_start(message: Message, state: FSMContext):
    """Обработка команды /start"""
    await state.clear()

    is_admin = settings.is_admin(message.from_user.id)

    await message.answer(
        f"👋 Добро пожаловать в кибер-клуб!\n\n"
        f"Здесь вы можете:\n"
        f"🖥 Посмотреть свободные ПК\n"
        f"📅 Забронировать ПК на удобное время\n"
        f"🗑 Отменить бронирование (за 2+ часа - с возвратом)\n\n"
        f"Выберите действие:",
        reply_markup=get_main_menu_keyboard(is_admin)
    )


@router.message(F.text == "🖥 Карта зала")
async def hall_map(message: Message, coordinator: ReservationCoordinator):
    """Схема зала со статусами ПК"""
    workstations = coordinator.list_resources()

    counts = {}
    for ws in workstations:
        counts[ws.status] = counts.get(ws.status, 0) + 1

    legend = "  ".join(f"{icon} {counts.get(status, 0)}" for status, icon in STATUS_ICONS.items())
    await message.answer(
        f"🖥 Карта зала\n\n{legend}\n\nНажмите на ПК, чтобы узнать подробности:",
        reply_markup=get_pcs_keyboard(workstations, prefix="pc_info")
    )


@router.callback_query(F.data.startswith("pc_info:"))
async def pc_info(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Подробности о ПК"""
    pc_id = int(callback.data.split(":")[1])
    ws = coordinator.get_resource(pc_id)
    free_time = coordinator.get_resource_free_time(pc_id)

    text = (
        f"{STATUS_ICONS.get(ws.status, '⚪')} {ws.name} (ряд {ws.position.row}, место {ws.position.col})\n\n"
        f"CPU: {ws.specs.cpu}\n"
        f"GPU: {ws.specs.gpu}\n"
        f"RAM: {ws.specs.ram}\n"
        f"Монитор: {ws.specs.monitor}\n\n"
        f"💰 {ws.price_per_hour}₽/час"
    )
    if free_time is not None:
        text += f"\n⏳ Освободится через: {format_duration(free_time)}"

    await callback.message.answer(text)
    await callback.answer()


@router.message(F.text == "📅 Забронировать ПК")
async def start_booking(message: Message, state: FSMContext, coordinator: ReservationCoordinator):
    """Начало процесса бронирования"""
    await state.clear()

    workstations = [ws for ws in coordinator.list_resources() if ws.status != STATUS_MAINTENANCE]
    await message.answer(
        "🖥 Выберите ПК:",
        reply_markup=get_pcs_keyboard(workstations)
    )
    await state.set_state(BookingStates.choosing_pc)


@router.callback_query(F.data.startswith("pc:"), BookingStates.choosing_pc)
async def process_pc(callback: CallbackQuery, state: FSMContext, coordinator: ReservationCoordinator):
    """Обработка выбора ПК"""
    pc_id = int(callback.data.split(":")[1])
    ws = coordinator.get_resource(pc_id)

    await state.update_data(pc_id=pc_id)

    await callback.message.edit_text(
        f"🖥 {ws.name}, {ws.price_per_hour}₽/час\n\n⏱ Выберите длительность:",
        reply_markup=get_duration_keyboard()
    )
    await state.set_state(BookingStates.choosing_duration)
    await callback.answer()


@router.callback_query(F.data.startswith("duration:"), BookingStates.choosing_duration)
async def process_duration(callback: CallbackQuery, state: FSMContext, coordinator: ReservationCoordinator):
    """Обработка выбора длительности"""
    duration = int(callback.data.split(":")[1])
    data = await state.get_data()

    times = coordinator.get_available_slots(data['pc_id'], duration)
    logger.info(f"Свободные слоты ПК #{data['pc_id']} на {duration} ч: {len(times)} шт.")

    if not times:
        await callback.answer("Нет свободного времени на такую длительность", show_alert=True)
        return

    await state.update_data(duration=duration)
    await callback.message.edit_text(
        "🕐 Выберите время начала:",
        reply_markup=get_times_keyboard(times)
    )
    await state.set_state(BookingStates.choosing_time)
    await callback.answer()


@router.callback_query(F.data.startswith("time:"), BookingStates.choosing_time)
async def process_time(callback: CallbackQuery, state: FSMContext, coordinator: ReservationCoordinator):
    """Обработка выбора времени"""
    time_str = callback.data.split(":", 1)[1]
    selected_time = datetime.strptime(time_str, "%Y-%m-%d-%H-%M")

    await state.update_data(selected_time=selected_time)
    data = await state.get_data()

    ws = coordinator.get_resource(data['pc_id'])
    price = ws.price_per_hour * data['duration']
    balance = coordinator.get_account().balance

    await callback.message.edit_text(
        f"✅ Подтверждение бронирования:\n\n"
        f"🖥 ПК: {ws.name}\n"
        f"📅 Дата: {format_datetime(selected_time)}\n"
        f"⏱ Длительность: {data['duration']} ч\n"
        f"💰 Стоимость: {price}₽ (на балансе {balance}₽)\n\n"
        f"Подтвердите бронирование:",
        reply_markup=get_confirmation_keyboard()
    )
    await state.set_state(BookingStates.confirming)
    await callback.answer()


@router.callback_query(F.data == "confirm_booking", BookingStates.confirming)
async def confirm_booking(callback: CallbackQuery, state: FSMContext, coordinator: ReservationCoordinator):
    """Подтверждение и создание бронирования"""
    data = await state.get_data()
    await state.clear()

    result = coordinator.create_booking(data['pc_id'], data['selected_time'], data['duration'])

    if not result.success:
        await callback.message.edit_text(f"⚠️ {result.message}")
        await callback.answer()
        return

    booking_id = result.data['booking_id']
    admin_text = (
        f"📌 Новое бронирование #{booking_id}\n\n"
        f"👤 @{callback.from_user.username or 'без username'}\n"
        f"{result.message}"
    )
    for admin_id in settings.ADMIN_IDS:
        try:
            await callback.bot.send_message(admin_id, admin_text)
        except Exception as e:
            logger.error(f"Не удалось отправить уведомление админу {admin_id}: {e}")

    await callback.message.edit_text(
        f"✅ Бронирование успешно создано!\n\n"
        f"📋 Номер брони: #{booking_id}\n"
        f"{result.message}\n"
        f"💳 Остаток на балансе: {result.data['balance']}₽"
    )
    await callback.answer()


@router.message(F.text == "📋 Мои бронирования")
async def my_bookings(message: Message, coordinator: ReservationCoordinator):
    """Просмотр активных бронирований клуба"""
    bookings = coordinator.list_bookings(include_completed=False)

    if not bookings:
        await message.answer(
            NO_BOOKINGS_TEXT,
            reply_markup=get_main_menu_keyboard(settings.is_admin(message.from_user.id))
        )
        return

    await message.answer(
        bookings_header(len(bookings)),
        reply_markup=get_bookings_keyboard(bookings)
    )


@router.callback_query(F.data == "my_bookings")
async def callback_my_bookings(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Возврат к списку бронирований"""
    bookings = coordinator.list_bookings(include_completed=False)

    if not bookings:
        await callback.message.edit_text(NO_BOOKINGS_TEXT)
        await callback.answer()
        return

    await callback.message.edit_text(
        bookings_header(len(bookings)),
        reply_markup=get_bookings_keyboard(bookings)
    )
    await callback.answer()


@router.callback_query(F.data.startswith("show_booking:"))
async def show_booking_details(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Показать детали бронирования"""
    booking_id = int(callback.data.split(":")[1])
    booking = next((b for b in coordinator.list_bookings() if b.id == booking_id), None)

    if booking is None:
        await callback.answer("Бронирование не найдено", show_alert=True)
        return

    text = (
        f"📋 Бронирование #{booking.id}\n\n"
        f"🖥 ПК: {booking.pc_name}\n"
        f"📅 Дата и время: {format_datetime(booking.start_time)}\n"
        f"⏱ Длительность: {booking.duration} ч\n"
        f"💰 Оплачено: {booking.price}₽"
    )

    await callback.message.edit_text(
        text,
        reply_markup=get_booking_actions_keyboard(booking.id)
    )
    await callback.answer()


@router.callback_query(F.data.startswith("cancel_booking:"))
async def cancel_booking(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Отмена бронирования"""
    booking_id = int(callback.data.split(":")[1])
    result = coordinator.cancel_booking(booking_id)

    if not result.success:
        await callback.answer(result.message, show_alert=True)
        return

    admin_text = (
        f"❌ Бронирование #{booking_id} отменено\n\n"
        f"👤 @{callback.from_user.username or 'без username'}\n"
        f"💸 Возврат: {result.data['refund_amount']}₽"
    )
    for admin_id in settings.ADMIN_IDS:
        try:
            await callback.bot.send_message(admin_id, admin_text)
        except Exception as e:
            logger.error(f"Не удалось отправить уведомление админу {admin_id}: {e}")

    await callback.message.edit_text(f"✅ {result.message}")
    await callback.answer()


@router.callback_query(F.data.startswith("complete_session:"))
async def complete_session(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Досрочное завершение сессии"""
    booking_id = int(callback.data.split(":")[1])
    result = coordinator.complete_session(booking_id)

    if not result.success:
        await callback.answer(result.message, show_alert=True)
        return

    await callback.message.edit_text(f"🏁 {result.message}\n⭐ Уровень: {result.data['level']}")
    await callback.answer()


@router.message(F.text == "👤 Профиль")
async def profile(message: Message, coordinator: ReservationCoordinator):
    """Профиль посетителя"""
    account = coordinator.get_account()
    completed = [b for b in coordinator.list_bookings() if b.completed]

    await message.answer(
        f"{account.avatar} {account.name}\n\n"
        f"💳 Баланс: {account.balance}₽\n"
        f"🏅 Рейтинг: {account.rating}\n"
        f"⭐ Уровень: {account.level}\n"
        f"⏱ Часов в клубе: {account.total_hours}\n"
        f"🎮 Сессий завершено: {len(completed)}"
    )


# Навигация назад
@router.callback_query(F.data == "back_to_pc")
async def back_to_pc(callback: CallbackQuery, state: FSMContext, coordinator: ReservationCoordinator):
    """Возврат к выбору ПК"""
    workstations = [ws for ws in coordinator.list_resources() if ws.status != STATUS_MAINTENANCE]
    await callback.message.edit_text(
        "🖥 Выберите ПК:",
        reply_markup=get_pcs_keyboard(workstations)
    )
    await state.set_state(BookingStates.choosing_pc)
    await callback.answer()


@router.callback_query(F.data == "back_to_duration")
async def back_to_duration(callback: CallbackQuery, state: FSMContext):
    """Возврат к выбору длительности"""
    await callback.message.edit_text(
        "⏱ Выберите длительность:",
        reply_markup=get_duration_keyboard()
    )
    await state.set_state(BookingStates.choosing_duration)
    await callback.answer()


@router.callback_query(F.data == "main_menu")
async def callback_main_menu(callback: CallbackQuery, state: FSMContext):
    """Возврат в главное меню"""
    await state.clear()

    await callback.message.answer(
        "🏠 Главное меню",
        reply_markup=get_main_menu_keyboard(settings.is_admin(callback.from_user.id))
    )
    await callback.answer()


@router.callback_query(F.data == "cancel")
async def cancel_booking_process(callback: CallbackQuery, state: FSMContext):
    """Отмена текущего действия"""
    await state.clear()

    await callback.message.edit_text("❌ Действие отменено")
    await callback.message.answer(
        "Выберите действие:",
        reply_markup=get_main_menu_keyboard(settings.is_admin(callback.from_user.id))
    )
    await callback.answer()

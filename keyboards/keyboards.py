"""
Клавиатуры для Telegram бота
"""
from datetime import datetime
from typing import List

from aiogram.types import InlineKeyboardMarkup, KeyboardButton, ReplyKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from config import settings
from database.models import (
    Booking, CartItem, ShopItem, Tournament, Workstation,
    STATUS_AVAILABLE, STATUS_BOOKED, STATUS_MAINTENANCE, STATUS_OCCUPIED
)
from utils.time_utils import format_date, format_hours, format_time

STATUS_ICONS = {
    STATUS_AVAILABLE: '🟢',
    STATUS_BOOKED: '🟡',
    STATUS_OCCUPIED: '🔴',
    STATUS_MAINTENANCE: '🔧',
}


def get_main_menu_keyboard(is_admin: bool = False) -> ReplyKeyboardMarkup:
    """Главное меню"""
    buttons = [
        [KeyboardButton(text="🖥 Карта зала"), KeyboardButton(text="📅 Забронировать ПК")],
        [KeyboardButton(text="📋 Мои бронирования"), KeyboardButton(text="👤 Профиль")],
        [KeyboardButton(text="🛒 Магазин"), KeyboardButton(text="🏆 Турниры")],
        [KeyboardButton(text="🎲 Blind Date")],
    ]

    if is_admin:
        buttons.append([KeyboardButton(text="⚙️ Админ-панель")])

    return ReplyKeyboardMarkup(keyboard=buttons, resize_keyboard=True)


def get_pcs_keyboard(workstations: List[Workstation], prefix: str = "pc") -> InlineKeyboardMarkup:
    """Схема зала: ПК по рядам"""
    builder = InlineKeyboardBuilder()

    for ws in workstations:
        builder.button(
            text=f"{STATUS_ICONS.get(ws.status, '⚪')} {ws.id}",
            callback_data=f"{prefix}:{ws.id}"
        )

    builder.button(text="❌ Отмена", callback_data="cancel")
    builder.adjust(settings.HALL_COLUMNS)

    return builder.as_markup()


def get_duration_keyboard() -> InlineKeyboardMarkup:
    """Клавиатура выбора длительности"""
    builder = InlineKeyboardBuilder()

    for hours in range(settings.MIN_BOOKING_HOURS, settings.MAX_BOOKING_HOURS + 1):
        builder.button(text=format_hours(hours), callback_data=f"duration:{hours}")

    builder.button(text="◀️ Назад", callback_data="back_to_pc")
    builder.button(text="❌ Отмена", callback_data="cancel")
    builder.adjust(3, 3, 2)

    return builder.as_markup()


def get_times_keyboard(times: List[datetime]) -> InlineKeyboardMarkup:
    """Клавиатура выбора времени"""
    builder = InlineKeyboardBuilder()

    for time in times:
        builder.button(
            text=f"{format_date(time)} {format_time(time)}",
            callback_data=f"time:{time.strftime('%Y-%m-%d-%H-%M')}"
        )

    builder.button(text="◀️ Назад", callback_data="back_to_duration")
    builder.button(text="❌ Отмена", callback_data="cancel")
    builder.adjust(2)

    return builder.as_markup()


def get_confirmation_keyboard() -> InlineKeyboardMarkup:
    """Клавиатура подтверждения бронирования"""
    builder = InlineKeyboardBuilder()

    builder.button(text="✅ Подтвердить", callback_data="confirm_booking")
    builder.button(text="◀️ Изменить", callback_data="back_to_duration")
    builder.button(text="❌ Отмена", callback_data="cancel")
    builder.adjust(1)

    return builder.as_markup()


def get_bookings_keyboard(bookings: List[Booking]) -> InlineKeyboardMarkup:
    """Клавиатура списка бронирований"""
    builder = InlineKeyboardBuilder()

    for booking in bookings:
        if booking.start_time is not None:
            text = f"🗓 {booking.pc_name} {format_date(booking.start_time)} {format_time(booking.start_time)}"
        else:
            text = f"🗓 {booking.pc_name} (дата не указана)"
        builder.button(text=text, callback_data=f"show_booking:{booking.id}")

    builder.button(text="🏠 Главное меню", callback_data="main_menu")
    builder.adjust(1)

    return builder.as_markup()


def get_booking_actions_keyboard(booking_id: int) -> InlineKeyboardMarkup:
    """Клавиатура действий с бронированием"""
    builder = InlineKeyboardBuilder()

    builder.button(text="🗑 Отменить бронь", callback_data=f"cancel_booking:{booking_id}")
    builder.button(text="🏁 Завершить сессию", callback_data=f"complete_session:{booking_id}")
    builder.button(text="◀️ Назад", callback_data="my_bookings")
    builder.adjust(1)

    return builder.as_markup()


def get_shop_keyboard(items: List[ShopItem], cart_size: int) -> InlineKeyboardMarkup:
    """Клавиатура магазина"""
    builder = InlineKeyboardBuilder()

    for item in items:
        builder.button(
            text=f"{item.image} {item.name} - {item.price}₽",
            callback_data=f"add_to_cart:{item.id}"
        )

    builder.button(text=f"🛒 Корзина ({cart_size})", callback_data="show_cart")
    builder.adjust(1)

    return builder.as_markup()


def get_cart_keyboard(cart: List[CartItem]) -> InlineKeyboardMarkup:
    """Клавиатура корзины"""
    builder = InlineKeyboardBuilder()

    for cart_item in cart:
        builder.button(
            text=f"➖ {cart_item.name}",
            callback_data=f"remove_from_cart:{cart_item.cart_id}"
        )

    if cart:
        builder.button(text="💳 Оплатить", callback_data="purchase_cart")
        builder.button(text="🗑 Очистить", callback_data="clear_cart")
    builder.button(text="◀️ В магазин", callback_data="shop")
    builder.adjust(1)

    return builder.as_markup()


def get_tournaments_keyboard(tournaments: List[Tournament]) -> InlineKeyboardMarkup:
    """Клавиатура турниров"""
    builder = InlineKeyboardBuilder()

    for tournament in tournaments:
        builder.button(
            text=f"🏆 {tournament.name} ({tournament.participants}/{tournament.max_participants})",
            callback_data=f"join_tournament:{tournament.id}"
        )

    builder.button(text="🏠 Главное меню", callback_data="main_menu")
    builder.adjust(1)

    return builder.as_markup()


def get_admin_keyboard() -> InlineKeyboardMarkup:
    """Клавиатура админ-панели"""
    builder = InlineKeyboardBuilder()

    builder.button(text="📋 Брони на сегодня", callback_data="admin_today")
    builder.button(text="🔧 Статус ПК", callback_data="admin_status")
    builder.button(text="🏠 Главное меню", callback_data="main_menu")
    builder.adjust(1)

    return builder.as_markup()


def get_admin_status_keyboard(pc_id: int) -> InlineKeyboardMarkup:
    """Выбор ручного статуса ПК"""
    builder = InlineKeyboardBuilder()

    builder.button(text="🔴 Занят", callback_data=f"set_status:{pc_id}:{STATUS_OCCUPIED}")
    builder.button(text="🔧 Обслуживание", callback_data=f"set_status:{pc_id}:{STATUS_MAINTENANCE}")
    builder.button(text="🟢 Снять статус", callback_data=f"set_status:{pc_id}:{STATUS_AVAILABLE}")
    builder.button(text="❌ Отмена", callback_data="cancel")
    builder.adjust(1)

    return builder.as_markup()


def get_cancel_keyboard() -> InlineKeyboardMarkup:
    """Простая клавиатура отмены"""
    builder = InlineKeyboardBuilder()
    builder.button(text="❌ Отмена", callback_data="cancel")
    return builder.as_markup()

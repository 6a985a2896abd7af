"""
Обработчики магазина: корзина и покупка
"""
import logging

from aiogram import Router, F
from aiogram.types import Message, CallbackQuery

from services.coordinator import ReservationCoordinator
from keyboards.keyboards import get_shop_keyboard, get_cart_keyboard

logger = logging.getLogger(__name__)
router = Router()


def cart_text(coordinator: ReservationCoordinator) -> str:
    cart = coordinator.get_cart()
    if not cart:
        return "🛒 Корзина пуста"
    lines = [f"• {c.name} - {c.price}₽" for c in cart]
    total = sum(c.price for c in cart)
    balance = coordinator.get_account().balance
    return "🛒 Корзина\n\n" + "\n".join(lines) + f"\n\nИтого: {total}₽ (на балансе {balance}₽)"


@router.message(F.text == "🛒 Магазин")
async def shop(message: Message, coordinator: ReservationCoordinator):
    """Витрина магазина"""
    await message.answer(
        "🛒 Магазин\n\nНажмите на товар, чтобы добавить его в корзину:",
        reply_markup=get_shop_keyboard(coordinator.list_shop_items(), len(coordinator.get_cart()))
    )


@router.callback_query(F.data == "shop")
async def callback_shop(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Возврат в магазин"""
    await callback.message.edit_text(
        "🛒 Магазин\n\nНажмите на товар, чтобы добавить его в корзину:",
        reply_markup=get_shop_keyboard(coordinator.list_shop_items(), len(coordinator.get_cart()))
    )
    await callback.answer()


@router.callback_query(F.data.startswith("add_to_cart:"))
async def add_to_cart(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Добавление товара в корзину"""
    item_id = int(callback.data.split(":")[1])
    result = coordinator.add_to_cart(item_id)

    if not result.success:
        await callback.answer(result.message, show_alert=True)
        return

    await callback.message.edit_reply_markup(
        reply_markup=get_shop_keyboard(coordinator.list_shop_items(), len(coordinator.get_cart()))
    )
    await callback.answer(result.message)


@router.callback_query(F.data == "show_cart")
async def show_cart(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Просмотр корзины"""
    await callback.message.edit_text(
        cart_text(coordinator),
        reply_markup=get_cart_keyboard(coordinator.get_cart())
    )
    await callback.answer()


@router.callback_query(F.data.startswith("remove_from_cart:"))
async def remove_from_cart(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Удаление позиции из корзины"""
    cart_id = int(callback.data.split(":")[1])
    result = coordinator.remove_from_cart(cart_id)

    await callback.message.edit_text(
        cart_text(coordinator),
        reply_markup=get_cart_keyboard(coordinator.get_cart())
    )
    await callback.answer(result.message)


@router.callback_query(F.data == "clear_cart")
async def clear_cart(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Очистка корзины"""
    coordinator.clear_cart()
    await callback.message.edit_text(cart_text(coordinator), reply_markup=get_cart_keyboard([]))
    await callback.answer()


@router.callback_query(F.data == "purchase_cart")
async def purchase_cart(callback: CallbackQuery, coordinator: ReservationCoordinator):
    """Оплата корзины"""
    result = coordinator.purchase_cart()

    if not result.success:
        await callback.answer(f"❌ {result.message}", show_alert=True)
        return

    await callback.message.edit_text(
        f"✅ {result.message}\n\n"
        f"💰 Списано: {result.data['total']}₽\n"
        f"💳 Остаток на балансе: {result.data['balance']}₽"
    )
    await callback.answer()

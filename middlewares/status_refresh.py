"""
Middleware для пересчёта статусов ПК перед обработкой
"""
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject


class StatusRefreshMiddleware(BaseMiddleware):
    """Проход движка статусов перед каждым хендлером, чтобы показывать свежее состояние"""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        coordinator = data.get("coordinator")
        if coordinator is not None:
            coordinator.refresh_statuses()

        # Продолжение обработки
        return await handler(event, data)

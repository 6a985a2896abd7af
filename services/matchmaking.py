"""
Подбор пары и запросы в чат
"""
import logging
from datetime import datetime
from typing import List, Optional

from config import settings
from database.models import Account, ChatRequest, OnlineUser, REQUEST_BLIND_DATE, REQUEST_CHAT
from services.errors import DuplicateRequest, NoMatchFound

logger = logging.getLogger(__name__)


def is_compatible(account: Account, user: OnlineUser, max_gap: int = None) -> bool:
    """Общая игра и рейтинг в пределах допуска"""
    max_gap = settings.MATCH_RATING_GAP if max_gap is None else max_gap
    return user.game in account.games and abs(user.rating - account.rating) <= max_gap


def select_match(account: Account, candidates: List[OnlineUser], max_gap: int = None) -> OnlineUser:
    """Ближайший по рейтингу совместимый игрок, при равенстве - с меньшим ID"""
    compatible = [u for u in candidates if is_compatible(account, u, max_gap)]
    if not compatible:
        raise NoMatchFound()
    return min(compatible, key=lambda u: (abs(u.rating - account.rating), u.id))


def open_chat_request(social, account: Account, target: OnlineUser, now: datetime,
                      kind: str = REQUEST_CHAT, discount: int = 0,
                      duration: int = 0) -> ChatRequest:
    """
    Единственный переход «нет запроса -> ожидает ответа».
    Второй ожидающий запрос тому же игроку не создаётся.
    """
    if social.has_pending_request(target.id):
        raise DuplicateRequest(f"Запрос уже отправлен пользователю {target.name}")

    request = social.append_request(ChatRequest(
        id=None,
        to_user_id=target.id,
        to_user_name=target.name,
        from_user_name=account.name,
        created_at=now,
        kind=kind,
        discount=discount,
        duration=duration
    ))
    logger.info(f"Запрос #{request.id} ({kind}) отправлен пользователю {target.name}")
    return request


def open_blind_date(social, account: Account, now: datetime,
                    candidates: Optional[List[OnlineUser]] = None) -> ChatRequest:
    """Blind Date: подбор пары и запрос со скидкой"""
    if candidates is None:
        candidates = social.online_users()
    # Игроки, которым уже отправлен запрос, в подбор не попадают
    candidates = [u for u in candidates if not social.has_pending_request(u.id)]
    pair = select_match(account, candidates)
    return open_chat_request(
        social, account, pair, now,
        kind=REQUEST_BLIND_DATE,
        discount=settings.BLIND_DATE_DISCOUNT,
        duration=settings.BLIND_DATE_HOURS
    )

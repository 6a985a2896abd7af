"""
Ошибки бизнес-правил клуба

Все ошибки восстановимые: координатор превращает их в OperationResult
с success=False, сообщением и кодом.
"""


class EngineError(Exception):
    """Базовая ошибка бизнес-правил"""
    code = 'error'
    default_message = 'Операция не выполнена'

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotFound(EngineError):
    code = 'not_found'
    default_message = 'Не найдено'


class ResourceNotFound(NotFound):
    code = 'resource_not_found'
    default_message = 'ПК не найден'


class BookingNotFound(NotFound):
    code = 'booking_not_found'
    default_message = 'Бронирование не найдено'


class TournamentNotFound(NotFound):
    code = 'tournament_not_found'
    default_message = 'Турнир не найден'


class ShopItemNotFound(NotFound):
    code = 'shop_item_not_found'
    default_message = 'Товар не найден'


class CartItemNotFound(NotFound):
    code = 'cart_item_not_found'
    default_message = 'Позиция не найдена в корзине'


class UserNotFound(NotFound):
    code = 'user_not_found'
    default_message = 'Пользователь не найден'


class InsufficientFunds(EngineError):
    code = 'insufficient_funds'
    default_message = 'Недостаточно средств'


class CapacityExceeded(EngineError):
    code = 'capacity_exceeded'
    default_message = 'Мест нет'


class InvalidTimeWindow(EngineError):
    code = 'invalid_time_window'
    default_message = 'Некорректное время бронирования'


class SchedulingConflict(EngineError):
    code = 'scheduling_conflict'
    default_message = 'ПК уже забронирован на это время'


class BookingAlreadyCompleted(EngineError):
    code = 'booking_completed'
    default_message = 'Сессия уже завершена'


class AlreadyRegistered(EngineError):
    code = 'already_registered'
    default_message = 'Вы уже зарегистрированы на этот турнир'


class EmptyCart(EngineError):
    code = 'empty_cart'
    default_message = 'Корзина пуста'


class DuplicateRequest(EngineError):
    code = 'duplicate_request'
    default_message = 'Запрос уже отправлен этому пользователю'


class NoMatchFound(EngineError):
    code = 'no_match'
    default_message = 'Подходящая пара не найдена. Попробуйте позже!'

"""
Состояния для FSM (Finite State Machine)
"""
from aiogram.fsm.state import State, StatesGroup


class BookingStates(StatesGroup):
    """Состояния процесса бронирования"""
    choosing_pc = State()
    choosing_duration = State()
    choosing_time = State()
    confirming = State()

from aiogram.fsm.state import State, StatesGroup


class RoutineStates(StatesGroup):
    input = State()
    schedule = State()

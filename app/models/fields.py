"""
Contains enums and defaults shared by the schedule tables and services.
"""
from enum import Enum


class UmpirePosition(str, Enum):
    home = "H"
    replay = "R"
    first_base = "1B"
    second_base = "2B"
    third_base = "3B"
    left_field_line = "LF"
    right_field_line = "LR"
    on_deck = "OR"


class SeasonStatus(str, Enum):
    active = "active"
    finished = "finished"


class League(str, Enum):
    lvbp = "LVBP"
    lmbp = "LMBP"


DEFAULT_GAME_STATUS = "game"

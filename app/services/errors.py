"""Exceptions raised by the schedule services.

Routes translate these into HTTP responses; anything else coming out of the
persistence layer is left to propagate as an internal error.
"""


class ScheduleError(Exception):
    """Base exception for schedule and numbering errors"""

    pass


class ValidationError(ScheduleError):
    """Request data is missing or malformed"""

    pass


class ConflictError(ScheduleError):
    """A row with the same natural key already exists"""

    pass


class NotFoundError(ScheduleError):
    """Cell or season addressed by id does not exist"""

    pass


class LockUnavailable(ScheduleError):
    """The season lock could not be acquired in time.

    Never reaches callers of the numbering service: the store logs it and
    carries on without the lock.
    """

    def __init__(self, season_id: int, attempts: int) -> None:
        super().__init__(
            f"Season {season_id} lock not acquired after {attempts} attempt(s)"
        )
        self.season_id = season_id
        self.attempts = attempts

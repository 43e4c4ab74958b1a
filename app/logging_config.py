import logging, logging.config

# Store logger: lock retries (INFO) and degraded, unlocked renumbering (WARNING)
STORE_LOGGER = "app.services.schedule_store"


def _at_least_warning(level: str) -> str:
    numeric = logging.getLevelName(level)
    return level if isinstance(numeric, int) and numeric <= logging.WARNING else "WARNING"


def setup_logging(level: str = "INFO", access_log: bool = True, sql_echo: bool = False):
    level = level.upper()
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "schedule": {"format": "%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
                         "datefmt": "%Y-%m-%d %H:%M:%S"},
            "access_simple": {"format": "%(message)s"},
        },
        "handlers": {
            "stderr": {"class": "logging.StreamHandler", "formatter": "schedule"},
            "access": {"class": "logging.StreamHandler", "formatter": "access_simple"},
        },
        "loggers": {
            "uvicorn.error": {"level": level, "handlers": ["stderr"], "propagate": False},
            "uvicorn.access": {"level": ("INFO" if access_log else "WARNING"),
                               "handlers": ["access"], "propagate": False},
            # The engine's echo flag already prints SQL; keep it at INFO only then
            "sqlalchemy.engine": {"level": ("INFO" if sql_echo else "WARNING")},
            STORE_LOGGER: {"level": _at_least_warning(level)},
        },
        "root": {"level": level, "handlers": ["stderr"]},
    })

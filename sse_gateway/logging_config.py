import logging
import logging.config

from sse_gateway.config import get_settings

# Chatty third-party loggers; request lines are already logged by the gateway
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def setup_logging():
    """
    Configure global log format

    One console handler shared by the gateway, uvicorn and HTTP client loggers.
    The gateway level follows LOG_LEVEL, else DEBUG/INFO from the DEBUG flag.
    """
    settings = get_settings()
    log_level = (settings.LOG_LEVEL or ("DEBUG" if settings.DEBUG else "INFO")).upper()

    loggers = {
        "uvicorn": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "sse_gateway": {"handlers": ["console"], "level": log_level, "propagate": False},
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {"handlers": ["console"], "level": "WARNING", "propagate": False}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {"handlers": ["console"], "level": log_level},
            "loggers": loggers,
        }
    )

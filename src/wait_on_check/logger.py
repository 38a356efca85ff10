import logging
from typing import List

import notifiers.logging

from wait_on_check.config import Settings

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s - %(message)s"


def get_log_handlers(logger: logging.Logger, settings: Settings) -> List[logging.Handler]:
    if settings.TELEGRAM_TOKEN is None:
        return []
    handler = notifiers.logging.NotificationHandler(
        "telegram",
        defaults={
            "token": settings.TELEGRAM_TOKEN,
            "chat_id": settings.TELEGRAM_CHAT_ID,
        },
    )
    # only failed waits are worth a message
    handler.setLevel(logging.WARNING)
    logger.addHandler(handler)
    return [handler]


def setup_logging(settings: Settings, verbose: bool = False) -> logging.Logger:
    logging.basicConfig(format=LOG_FORMAT, level=logging.INFO)
    logger = logging.getLogger("wait_on_check")
    level = logging.DEBUG if verbose else settings.OVERRIDE_LOGGING
    logger.setLevel(level)
    get_log_handlers(logger, settings)
    return logger

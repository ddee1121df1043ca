from __future__ import annotations

import logging
import sys

from dotenv import load_dotenv

from .bot import WardenBot
from .config import ConfigError, load_settings
from .logging_setup import setup_logging

log = logging.getLogger("warden")


def main() -> None:
    load_dotenv()
    try:
        settings = load_settings()
    except ConfigError as e:
        setup_logging()
        log.critical("Configuration error: %s", e)
        sys.exit(1)
    setup_logging(settings.log_level)
    for note in settings.degraded_features():
        log.warning(note)

    bot = WardenBot(settings)
    bot.run(settings.token, log_handler=None)


if __name__ == "__main__":
    main()

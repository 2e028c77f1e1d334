import os
import sys
import logging
from loguru import logger

from fanout.config import LOG_LEVEL, LOG_DIR


def setup_logging(level: str = LOG_LEVEL, log_dir: str = LOG_DIR):
    """Configure structured logging with loguru."""
    logger.remove()  # Remove default handler
    os.makedirs(log_dir, exist_ok=True)
    logger.add(
        os.path.join(log_dir, "fanout_{time}.log"),
        rotation="1 day",
        retention="14 days",
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message} | {extra}",
        serialize=True,  # JSON formatting for structured logs
    )

    logger.add(
        sys.stdout,
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"
    )

    # Redirect httpx/solana stdlib loggers to loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to loguru."""
    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )

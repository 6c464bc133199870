# coding: utf-8
"""
Logging configuration with loguru for the trading settlement service

Sinks:
- stdout, colourised, at LOG_LEVEL
- logs/trading_*.log, everything
- logs/error_*.log, ERROR and above
- logs/ledger_*.log, money movements only (debits, credits, opens, closes, busts, transfers)
- Sentry, ERROR and above (when SENTRY_DSN is set)
"""
import logging
import sys
from pathlib import Path

import sentry_sdk
from loguru import logger

from config.config import LOG_LEVEL, ENVIRONMENT, SENTRY_DSN

LOGS_DIR = Path(__file__).parent.parent / "logs"

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"

# Modules whose INFO lines are an audit trail of balance changes
LEDGER_MODULES = (
    "src.services.ledger",
    "src.services.position_service",
    "src.services.liquidation",
    "src.services.transfers",
)

NOISY_LOGGERS = ("sqlalchemy.engine", "apscheduler", "asyncio")

SENTRY_LEVELS = {"ERROR": "error", "CRITICAL": "fatal"}


def is_ledger_record(record) -> bool:
    return record["name"] in LEDGER_MODULES and record["level"].no >= logger.level("INFO").no


def setup_logging() -> None:
    """
    Replace loguru's default sink with the service sinks
    """
    logger.remove()
    LOGS_DIR.mkdir(exist_ok=True)

    logger.add(
        sys.stdout,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        level=LOG_LEVEL,
        colorize=True,
    )

    logger.add(
        LOGS_DIR / "trading_{time:YYYY-MM-DD}.log",
        format=FILE_FORMAT,
        level="DEBUG",
        rotation="00:00",
        retention="7 days",
        compression="zip",
        encoding="utf-8",
    )

    logger.add(
        LOGS_DIR / "error_{time:YYYY-MM-DD}.log",
        format=FILE_FORMAT,
        level="ERROR",
        rotation="00:00",
        retention="30 days",
        compression="zip",
        encoding="utf-8",
    )

    # Balance audit trail
    logger.add(
        LOGS_DIR / "ledger_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {message}",
        filter=is_ledger_record,
        rotation="00:00",
        retention="90 days",
        encoding="utf-8",
    )

    if SENTRY_DSN:
        logger.add(sentry_sink, level="ERROR", format="{message}")

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"Trading service initialized | Environment: {ENVIRONMENT} | Log level: {LOG_LEVEL}")


def sentry_sink(message):
    """
    Forward ERROR and CRITICAL records to Sentry
    """
    record = message.record

    if record["exception"]:
        sentry_sdk.capture_exception(record["exception"].value)
        return

    level = SENTRY_LEVELS.get(record["level"].name)
    if level is None:
        return

    with sentry_sdk.new_scope() as scope:
        scope.set_extra("function", record["function"])
        scope.set_extra("file", record["file"].path)
        scope.set_extra("line", record["line"])
        sentry_sdk.capture_message(record["message"], level=level)

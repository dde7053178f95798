# core/logging.py
import sys

from loguru import logger

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Replace loguru's default sink with a single stderr sink.

    With ``json_logs`` every record is serialized, so values attached through
    ``logger.bind(...)`` end up as structured fields.
    """
    logger.remove()
    if json_logs:
        logger.add(sys.stderr, level=level.upper(), serialize=True)
    else:
        logger.add(sys.stderr, level=level.upper(), format=_FORMAT)

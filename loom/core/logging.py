"""Loguru sink setup"""

import sys
from typing import Optional

from loguru import logger

from loom.core.config import settings


def configure_logging(level: Optional[str] = None) -> None:
    """Replace loguru's default sink with a stderr sink at the configured level"""
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.LOG_LEVEL).upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
               "<cyan>{name}</cyan> - <level>{message}</level>",
    )

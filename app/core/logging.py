import logging

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = None) -> None:
    """Настройка логирования приложения"""
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)

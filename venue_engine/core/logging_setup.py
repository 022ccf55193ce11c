import logging
import os
from typing import Optional

from venue_engine.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(
    level: Optional[str] = None, log_dir: Optional[str] = None
) -> None:
    """Console logging, plus a file under LOG_DIR when one is configured."""
    level = (level or settings.LOG_LEVEL).upper()
    log_dir = settings.LOG_DIR if log_dir is None else log_dir

    handlers = [logging.StreamHandler()]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            logging.FileHandler(os.path.join(log_dir, settings.APP_LOG_FILENAME))
        )

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)

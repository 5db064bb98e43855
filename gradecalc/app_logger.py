import logging
from typing import Optional

from gradecalc.config import load_settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    level_name = (level or load_settings().log_level).upper()
    resolved = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger("gradecalc")
    logger.setLevel(resolved)

    # Streamlit reruns the script; only attach one handler
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(ch)
    for h in logger.handlers:
        h.setLevel(resolved)

    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    base = logging.getLogger("gradecalc")
    return base.getChild(name) if name else base

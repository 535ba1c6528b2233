# -*- coding: utf-8 -*-
# okxtrader/utils/logger.py
import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_MAX_MB = 5
LOG_BACKUP = 5
LOG_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'


class MsFormatter(logging.Formatter):
    """Local time with milliseconds: 2024-05-01 12:00:00.123"""

    def formatTime(self, record, datefmt=None):
        ct = datetime.fromtimestamp(record.created)
        return ct.strftime(datefmt or "%Y-%m-%d %H:%M:%S") + f".{int(record.msecs):03d}"


def setup_logger(name: str = 'okxtrader', log_path=None, level: int = logging.INFO) -> logging.Logger:
    """
    Console handler always, rotating file handler when log_path is given.
    Calling it again for the same logger does not stack handlers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    formatter = MsFormatter(LOG_FORMAT)

    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        ch = logging.StreamHandler(sys.stdout)
        ch.setFormatter(formatter)
        logger.addHandler(ch)

    if log_path:
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        # 避免重复添加同一路径的 handler
        target = str(log_path.resolve())
        if not any(isinstance(h, RotatingFileHandler) and h.baseFilename == target for h in logger.handlers):
            fh = RotatingFileHandler(log_path, maxBytes=LOG_MAX_MB * 1024 * 1024,
                                     backupCount=LOG_BACKUP, encoding="utf-8")
            fh.setFormatter(formatter)
            logger.addHandler(fh)

    return logger

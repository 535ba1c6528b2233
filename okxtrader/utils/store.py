# -*- coding: utf-8 -*-
# okxtrader/utils/store.py
"""
本地持久化：一个 JSON 文件里的 key/value 记录
(config 与资产历史两个 key)
"""
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

STORE_FILE = 'state.json'


def default_home() -> Path:
    return Path(os.environ.get('OKXTRADER_HOME') or Path.home() / '.okxtrader')


class LocalStore:
    """
    JSON key/value store.

    Each set() rewrites the whole file through a temp file + os.replace, under a
    lock, so a reader never sees a half-written record.
    """

    def __init__(self, home=None, filename=STORE_FILE):
        self.home = Path(home) if home else default_home()
        self.path = self.home / filename
        self._lock = threading.Lock()

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.warning("store %s unreadable, starting empty: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict):
        self.home.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix('.tmp')
        with open(tmp, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read_all().get(key, default)

    def set(self, key: str, value: Any):
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def delete(self, key: str):
        with self._lock:
            data = self._read_all()
            if key not in data:
                return
            del data[key]
            self._write_all(data)

# database/storage.py

"""
Долговременное локальное хранилище ключ -> строка.

Все ключи живут в одном JSON файле; запись атомарная (временный файл + replace).
"""

import json
import os
import threading
import logging
from pathlib import Path
from typing import Dict, Optional

from config import config

logger = logging.getLogger(__name__)

class LocalStorage:
    """Синхронное key -> string хранилище, переживающее перезапуск процесса"""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else config.storage.path
        self.file_lock = threading.RLock()
        self._items: Dict[str, str] = self._read_file()

    def _read_file(self) -> Dict[str, str]:
        if not self.path.exists():
            logger.info(f"Storage file {self.path} does not exist, starting empty")
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"⚠️ Storage file {self.path} is unreadable, starting empty: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"⚠️ Storage file {self.path} has unexpected shape, starting empty")
            return {}

        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_file(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._items, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)

    def get_item(self, key: str) -> Optional[str]:
        with self.file_lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self.file_lock:
            self._items[key] = value
            self._write_file()


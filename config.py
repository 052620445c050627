#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Habit Sync Engine - Configuration
Централизованная конфигурация с валидацией
"""

import os
import sys
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass
from enum import Enum

import pytz

class Environment(Enum):
    """Среды выполнения"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"

class LogLevel(Enum):
    """Уровни логирования"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

class SyncBackend(Enum):
    """Реализации удаленного хранилища"""
    MEMORY = "memory"
    SHEETS = "sheets"

@dataclass
class StorageConfig:
    """Конфигурация локального кэша"""
    data_dir: Path
    file_name: str = "local_storage.json"

    @property
    def path(self) -> Path:
        return self.data_dir / self.file_name

@dataclass
class SyncConfig:
    """Конфигурация синхронизации с удаленным хранилищем"""
    backend: SyncBackend = SyncBackend.MEMORY
    debounce_ms: int = 500
    google_sheet_id: Optional[str] = None
    google_credentials_file: str = "service_account.json"
    google_worksheet: str = "users"
    max_workers: int = 4

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

class HabitsConfig:
    """Главный класс конфигурации"""

    def __init__(self):
        self.environment = Environment(os.getenv('ENVIRONMENT', 'development'))
        self._load_config()
        self._validate_config()

    def _load_config(self):
        """Загрузка конфигурации из переменных окружения"""

        self.data_dir = Path(os.getenv('HABITS_DATA_DIR', 'data'))
        self.log_dir = Path(os.getenv('LOG_DIR', 'logs'))

        self.storage = StorageConfig(data_dir=self.data_dir)

        self.sync = SyncConfig(
            backend=SyncBackend(os.getenv('SYNC_BACKEND', 'memory').lower()),
            debounce_ms=int(os.getenv('SYNC_DEBOUNCE_MS', 500)),
            google_sheet_id=os.getenv('GOOGLE_SHEET_ID'),
            google_credentials_file=os.getenv('GOOGLE_CREDENTIALS_FILE', 'service_account.json'),
            google_worksheet=os.getenv('GOOGLE_WORKSHEET', 'users'),
            max_workers=int(os.getenv('REMOTE_MAX_WORKERS', 4))
        )

        # Пустое значение - системное локальное время
        self.timezone = os.getenv('TIMEZONE') or None

        # Логирование
        self.log_level = LogLevel(os.getenv('LOG_LEVEL', 'INFO').upper())
        self.log_to_file = os.getenv('LOG_TO_FILE', 'false').lower() == 'true'
        self.log_format = os.getenv(
            'LOG_FORMAT',
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        )

    def _validate_config(self):
        """Валидация конфигурации"""
        errors = []

        if self.sync.debounce_ms < 0:
            errors.append("SYNC_DEBOUNCE_MS не может быть отрицательным")

        if self.sync.max_workers <= 0:
            errors.append("REMOTE_MAX_WORKERS должен быть положительным числом")

        if self.sync.backend == SyncBackend.SHEETS and not self.sync.google_sheet_id:
            errors.append("Для SYNC_BACKEND=sheets требуется GOOGLE_SHEET_ID")

        if self.timezone:
            try:
                pytz.timezone(self.timezone)
            except pytz.UnknownTimeZoneError:
                errors.append(f"Неизвестная временная зона TIMEZONE={self.timezone}")

        if errors:
            raise ValueError("Ошибки конфигурации:\n" + "\n".join(f"• {error}" for error in errors))

    def ensure_directories(self):
        """Создание необходимых директорий"""
        directories = [self.data_dir]
        if self.log_to_file:
            directories.append(self.log_dir)

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

    def get_logging_config(self) -> Dict[str, Any]:
        """Получение конфигурации логирования"""
        handlers = ['console']
        if self.log_to_file:
            handlers.append('file')

        logging_config = {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'default': {
                    'format': self.log_format,
                    'datefmt': '%Y-%m-%d %H:%M:%S'
                }
            },
            'handlers': {
                'console': {
                    'class': 'logging.StreamHandler',
                    'level': self.log_level.value,
                    'formatter': 'default',
                    'stream': sys.stdout
                }
            },
            'loggers': {
                '': {
                    'level': self.log_level.value,
                    'handlers': handlers,
                    'propagate': False
                },
                'gspread': {
                    'level': 'WARNING',
                    'handlers': handlers,
                    'propagate': False
                },
                'urllib3': {
                    'level': 'WARNING',
                    'handlers': handlers,
                    'propagate': False
                }
            }
        }

        if self.log_to_file:
            logging_config['handlers']['file'] = {
                'class': 'logging.handlers.RotatingFileHandler',
                'level': self.log_level.value,
                'formatter': 'default',
                'filename': str(self.log_dir / f"habits_{self.environment.value}.log"),
                'maxBytes': 10485760,  # 10MB
                'backupCount': 5,
                'encoding': 'utf-8'
            }

        return logging_config

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация конфигурации в словарь"""
        return {
            'environment': self.environment.value,
            'storage_path': str(self.storage.path),
            'sync': {
                'backend': self.sync.backend.value,
                'debounce_ms': self.sync.debounce_ms,
                'google_sheet_id': (self.sync.google_sheet_id[:6] + "...") if self.sync.google_sheet_id else None,
                'worksheet': self.sync.google_worksheet
            },
            'timezone': self.timezone,
            'log_level': self.log_level.value
        }

# Глобальный экземпляр конфигурации
config = HabitsConfig()

__all__ = [
    'config',
    'HabitsConfig',
    'Environment',
    'LogLevel',
    'SyncBackend',
    'StorageConfig',
    'SyncConfig'
]

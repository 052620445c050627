import logging
import logging.config

from config import config

def setup_logging(app_config=None) -> logging.Logger:
    """Настройка системы логирования"""
    app_config = app_config or config
    if app_config.log_to_file:
        app_config.log_dir.mkdir(exist_ok=True, parents=True)
    logging.config.dictConfig(app_config.get_logging_config())
    return logging.getLogger('habits')

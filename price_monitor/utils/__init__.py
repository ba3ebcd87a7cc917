from .data_storage import ProductStore, DataStorage, ConfigManager, Logger
from .site_detection import extract_domain, detect_store
from .telegram_notifier import TelegramNotifier

__all__ = [
    "ProductStore",
    "DataStorage",
    "ConfigManager",
    "Logger",
    "extract_domain",
    "detect_store",
    "TelegramNotifier",
]

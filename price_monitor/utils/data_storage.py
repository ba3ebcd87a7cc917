import os
import json
import sys
import time
from datetime import datetime
from typing import List, Optional
from pathlib import Path

import pandas as pd
from loguru import logger

from ..models import MonitoredProduct, MonitoringResult


class ProductStore:
    """Armazenamento dos produtos monitorados em arquivo JSON"""

    def __init__(self, path: str = "data/products.json"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _load(self) -> List[MonitoredProduct]:
        if not self.path.exists():
            return []

        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)

        return [MonitoredProduct(**item) for item in data]

    def _save(self, products: List[MonitoredProduct]):
        payload = [product.model_dump(mode="json") for product in products]

        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        tmp_path.replace(self.path)

    def list_products(self, active_only: bool = False) -> List[MonitoredProduct]:
        """Lista os produtos cadastrados"""
        products = self._load()
        if active_only:
            products = [product for product in products if product.active]
        return products

    def get_product(self, product_id: str) -> Optional[MonitoredProduct]:
        for product in self._load():
            if product.id == product_id:
                return product
        return None

    def add_product(self, product: MonitoredProduct) -> MonitoredProduct:
        """Cadastra um novo produto"""
        products = self._load()
        if any(existing.id == product.id for existing in products):
            raise ValueError(f"Produto já cadastrado: {product.id}")

        products.append(product)
        self._save(products)
        logger.info(f"Produto cadastrado: {product.name} ({product.store})")
        return product

    def update_product(self, product: MonitoredProduct) -> bool:
        """Substitui o registro do produto com o mesmo id"""
        products = self._load()
        for index, existing in enumerate(products):
            if existing.id == product.id:
                products[index] = product
                self._save(products)
                return True
        return False

    def deactivate_product(self, product_id: str) -> bool:
        product = self.get_product(product_id)
        if product is None:
            return False
        product.active = False
        return self.update_product(product)

    def delete_product(self, product_id: str) -> bool:
        """Remove definitivamente o produto"""
        products = self._load()
        remaining = [product for product in products if product.id != product_id]
        if len(remaining) == len(products):
            return False
        self._save(remaining)
        return True


class DataStorage:
    """Gerenciador de armazenamento dos resultados de monitoramento"""

    def __init__(self, base_path: str = "data"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

        # Subdiretórios
        self.results_path = self.base_path / "results"
        self.products_path = self.base_path / "products"
        self.logs_path = self.base_path / "logs"

        for path in [self.results_path, self.products_path, self.logs_path]:
            path.mkdir(exist_ok=True)

    def save_monitoring_result(
        self, result: MonitoringResult, filename: Optional[str] = None
    ) -> str:
        """Salva o resultado completo de um ciclo"""
        if not filename:
            timestamp = result.checked_at.strftime("%Y%m%d_%H%M%S")
            filename = f"monitoring_{timestamp}.json"

        filepath = self.results_path / filename

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(result.model_dump(mode="json"), f, ensure_ascii=False, indent=2)

        return str(filepath)

    def save_products_csv(
        self, products: List[MonitoredProduct], filename: Optional[str] = None
    ) -> str:
        """Salva produtos em formato CSV"""
        if not filename:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = f"products_{timestamp}.csv"

        filepath = self.products_path / filename

        products_data = []
        for product in products:
            row = product.model_dump(exclude={"price_history"})
            row["history_size"] = len(product.price_history)
            products_data.append(row)
        df = pd.DataFrame(products_data)

        df.to_csv(filepath, index=False, encoding="utf-8")

        return str(filepath)

    def cleanup_old_results(self, days: int = 30) -> int:
        """Remove resultados antigos"""
        cutoff_time = time.time() - (days * 24 * 60 * 60)
        removed = 0

        for filepath in self.results_path.glob("*.json"):
            if filepath.stat().st_mtime < cutoff_time:
                filepath.unlink()
                removed += 1
                logger.debug(f"Removido: {filepath.name}")

        return removed


class ConfigManager:
    """Gerenciador de configurações"""

    DEFAULTS = {
        "DEBUG": "False",
        "DATA_DIR": "data",
        "USER_AGENT": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
        ),
        "HEADLESS_TIMEOUT": "30",
        "HTTP_TIMEOUT": "15",
        "SETTLE_DELAY": "2",
        "FETCH_STRATEGIES": "selenium,playwright,http",
        "PLAYWRIGHT_BROWSER": "chromium",
        "CHECK_INTERVAL_MINUTES": "60",
        "TELEGRAM_BOT_TOKEN": "",
        "TELEGRAM_CHAT_ID": "",
        "RESULTS_RETENTION_DAYS": "30",
    }

    def __init__(self, config_file: str = ".env"):
        self.config_file = config_file
        self.config = self._load_config()

    def _load_config(self) -> dict:
        """Carrega configurações do arquivo .env e do ambiente"""
        config = {}

        if os.path.exists(self.config_file):
            with open(self.config_file, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        key, value = line.split("=", 1)
                        config[key.strip()] = value.strip().strip('"').strip("'")

        # Variáveis de ambiente têm precedência sobre o arquivo
        for key in self.DEFAULTS:
            if key in os.environ:
                config[key] = os.environ[key]

        for key, value in self.DEFAULTS.items():
            if key not in config:
                config[key] = value

        return config

    def get(self, key: str, default=None):
        """Obtém valor de configuração"""
        return self.config.get(key, default)

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Aceita true/1/yes/on/sim, em qualquer caixa"""
        value = self.get(key)
        if value is None or str(value).strip() == "":
            return default
        return str(value).strip().lower() in ("true", "1", "yes", "on", "sim")

    def get_list(self, key: str, default: str = "") -> List[str]:
        """Lista separada por vírgulas, normalizada para minúsculas"""
        raw = self.get(key, default) or default
        return [item.strip().lower() for item in str(raw).split(",") if item.strip()]

    def _get_number(self, key: str, default, cast):
        value = self.get(key)
        if value is None:
            return default
        try:
            return cast(value)
        except (ValueError, TypeError):
            logger.warning(f"Valor inválido para {key}: {value!r}, usando {default}")
            return default

    def get_int(self, key: str, default: int = 0) -> int:
        return self._get_number(key, default, int)

    def get_float(self, key: str, default: float = 0.0) -> float:
        return self._get_number(key, default, float)


CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


class Logger:
    """Configurador de logging do monitor"""

    @staticmethod
    def setup_logging(
        level: str = "INFO", log_file: Optional[str] = None, retention_days: int = 30
    ):
        """
        Console colorido e, opcionalmente, arquivo rotativo.

        Arquivo com ``enqueue=True``: o Selenium registra a partir de
        threads do executor.
        """
        logger.remove()
        logger.add(sys.stdout, level=level, format=CONSOLE_FORMAT, colorize=True)

        if log_file:
            logger.add(
                log_file,
                level=level,
                format=FILE_FORMAT,
                rotation="10 MB",
                retention=f"{retention_days} days",
                compression="zip",
                enqueue=True,
            )

        return logger

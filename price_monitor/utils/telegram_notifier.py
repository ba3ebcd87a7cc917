from typing import Optional

import requests
from loguru import logger

from ..models import MonitoredProduct, NotificationEvent


TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"


class TelegramNotifier:
    """Envia alertas de queda de preço pela API de bots do Telegram"""

    def __init__(
        self,
        bot_token: Optional[str],
        chat_id: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        self.bot_token = bot_token or ""
        self.chat_id = chat_id or ""
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def format_message(
        self, event: NotificationEvent, product: MonitoredProduct
    ) -> str:
        """Monta a mensagem em Markdown do alerta"""
        message = "🚨 *Alerta de Preço!*\n\n"
        message += f"📦 *Produto:* {product.name}\n"
        message += f"🏪 *Loja:* {product.store}\n"
        message += f"💰 *Preço Atual:* R$ {event.new_price:.2f}\n"
        message += f"🎯 *Preço Alvo:* R$ {event.target_price:.2f}\n"

        if event.old_price:
            message += f"📊 *Preço Anterior:* R$ {event.old_price:.2f}\n"
        if event.discount_percentage > 0:
            message += f"📉 *Desconto:* {event.discount_percentage:.1f}%\n"

        message += f"\n🔗 [Ver Produto]({product.url})"
        return message

    def send_price_alert(
        self, event: NotificationEvent, product: MonitoredProduct
    ) -> bool:
        """Envia o alerta; retorna False em caso de falha"""
        if not self.is_configured:
            logger.warning("Telegram não configurado, alerta não enviado")
            return False

        payload = {
            "chat_id": self.chat_id,
            "text": self.format_message(event, product),
            "parse_mode": "Markdown",
            "disable_web_page_preview": False,
        }

        try:
            response = self.session.post(
                TELEGRAM_API_URL.format(token=self.bot_token),
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            logger.success(f"Alerta enviado para {product.name}")
            return True

        except requests.exceptions.RequestException as e:
            logger.error(f"Erro ao enviar alerta do Telegram: {str(e)}")
            return False

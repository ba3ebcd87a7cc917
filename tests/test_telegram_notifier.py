from unittest.mock import MagicMock

import pytest
import requests

from price_monitor.models import MonitoredProduct, NotificationEvent
from price_monitor.utils import TelegramNotifier


@pytest.fixture
def product():
    return MonitoredProduct(
        name="Console PS5",
        url="https://www.americanas.com.br/produto/123",
        target_price=3500.0,
    )


@pytest.fixture
def event(product):
    return NotificationEvent.from_prices(product.id, 3999.9, 3399.0, product.target_price)


def test_message_contents(event, product):
    message = TelegramNotifier("token", "chat").format_message(event, product)

    assert "Console PS5" in message
    assert "Americanas" in message
    assert "R$ 3399.00" in message
    assert "R$ 3500.00" in message
    assert "R$ 3999.90" in message
    assert "Desconto:* 15.0%" in message
    assert product.url in message


def test_send_posts_to_bot_api(event, product):
    session = MagicMock()
    notifier = TelegramNotifier("123:abc", "999", session=session)

    assert notifier.send_price_alert(event, product) is True

    url = session.post.call_args.args[0]
    payload = session.post.call_args.kwargs["json"]
    assert url == "https://api.telegram.org/bot123:abc/sendMessage"
    assert payload["chat_id"] == "999"
    assert payload["parse_mode"] == "Markdown"


def test_send_failure_returns_false(event, product):
    session = MagicMock()
    session.post.return_value.raise_for_status.side_effect = requests.exceptions.HTTPError("400")

    assert TelegramNotifier("t", "c", session=session).send_price_alert(event, product) is False


def test_not_configured(event, product):
    session = MagicMock()
    notifier = TelegramNotifier(None, "", session=session)

    assert notifier.is_configured is False
    assert notifier.send_price_alert(event, product) is False
    session.post.assert_not_called()

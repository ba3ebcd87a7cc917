from datetime import datetime, timedelta

from price_monitor.scrapers import SelectorTelemetry


def test_attempts_are_bounded_per_domain():
    telemetry = SelectorTelemetry()
    for i in range(60):
        telemetry.record("amazon.com.br", ".a-price-whole", True, 100.0 + i)
    telemetry.record("kabum.com.br", ".finalPrice", True, 50.0)

    attempts = telemetry.attempts("amazon.com.br")
    assert len(attempts) == 50
    assert attempts[0].price == 110.0
    assert len(telemetry.attempts("kabum.com.br")) == 1


def test_stats():
    telemetry = SelectorTelemetry()
    for selector in [".a", ".b", ".b", ".c", ".b", ".a"]:
        telemetry.record("loja.com.br", selector, True, 10.0)
    telemetry.record("loja.com.br", None, False)
    telemetry.record("loja.com.br", None, False)

    stats = telemetry.stats("loja.com.br")

    assert stats["total_attempts"] == 8
    assert stats["success_rate"] == 75.0
    assert stats["best_selectors"] == [".b", ".a", ".c"]


def test_stats_for_unknown_domain():
    assert SelectorTelemetry().stats("nada.com") == {
        "total_attempts": 0,
        "success_rate": 0.0,
        "best_selectors": [],
    }


def test_export_uses_iso_timestamps():
    telemetry = SelectorTelemetry()
    when = datetime(2024, 11, 29, 10, 30)
    telemetry.record("loja.com.br", ".preco", True, 19.9, when=when)

    data = telemetry.export()

    assert data["loja.com.br"]["attempts"][0]["timestamp"] == "2024-11-29T10:30:00"
    assert data["loja.com.br"]["stats"]["total_attempts"] == 1


def test_clear_old():
    telemetry = SelectorTelemetry()
    now = datetime.now()
    telemetry.record("loja.com.br", ".velho", True, 1.0, when=now - timedelta(days=10))
    telemetry.record("loja.com.br", ".novo", True, 1.0, when=now)

    assert telemetry.clear_old(days=7) == 1
    assert [a.selector for a in telemetry.attempts("loja.com.br")] == [".novo"]

from unittest.mock import AsyncMock, MagicMock

import pytest

from price_monitor.agents import MonitoringOrchestrator, PriceMonitorScheduler
from price_monitor.models import MonitoredProduct, MonitoringResult, ScrapeResult
from price_monitor.utils import ProductStore


def ok(price: float, selector: str = ".price") -> ScrapeResult:
    return ScrapeResult(success=True, price=price, selector=selector, strategy="fake")


def failed(error: str = "AllStrategiesExhausted") -> ScrapeResult:
    return ScrapeResult(success=False, error=error, detail="selenium: FetchTimeout")


@pytest.fixture
def store(tmp_path):
    return ProductStore(str(tmp_path / "products.json"))


@pytest.fixture
def products(store):
    items = [
        MonitoredProduct(
            name="Smart TV 55",
            url="https://www.amazon.com.br/dp/TV55",
            target_price=2500.0,
            current_price=2799.0,
        ),
        MonitoredProduct(
            name="Fone Bluetooth",
            url="https://loja-fora-do-ar.com.br/fone",
            target_price=150.0,
        ),
        MonitoredProduct(
            name="Notebook",
            url="https://www.kabum.com.br/produto/123",
            target_price=3000.0,
            selector=".finalPrice",
        ),
    ]
    for item in items:
        store.add_product(item)
    return items


def fake_scraper(prices_by_url):
    """Scraper falso: devolve o resultado cadastrado para cada URL"""

    async def lookup(url, selector=None):
        outcome = prices_by_url[url]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    scraper = MagicMock()
    scraper.scrape_price_auto = AsyncMock(side_effect=lookup)
    scraper.scrape_price = AsyncMock(side_effect=lookup)
    return scraper


@pytest.mark.asyncio
async def test_one_unreachable_product_does_not_stop_the_cycle(store, products):
    scraper = fake_scraper(
        {
            products[0].url: ok(2399.9),
            products[1].url: failed(),
            products[2].url: ok(3200.0, ".finalPrice"),
        }
    )
    orchestrator = MonitoringOrchestrator(scraper, store)

    result = await orchestrator.run_monitoring()

    assert result.total_checked == 2
    assert len(result.errors) == 1
    assert "Fone Bluetooth" in result.errors[0]
    assert "AllStrategiesExhausted" in result.errors[0]

    tv = store.get_product(products[0].id)
    assert tv.current_price == pytest.approx(2399.9)
    assert len(tv.price_history) == 1
    assert store.get_product(products[1].id).current_price is None


@pytest.mark.asyncio
async def test_event_only_when_price_reaches_target(store, products):
    scraper = fake_scraper(
        {
            products[0].url: ok(2399.9),
            products[1].url: ok(199.0),
            products[2].url: ok(3200.0, ".finalPrice"),
        }
    )

    result = await MonitoringOrchestrator(scraper, store).run_monitoring()

    assert [e.product_id for e in result.events] == [products[0].id]
    event = result.events[0]
    assert event.old_price == pytest.approx(2799.0)
    assert event.new_price == pytest.approx(2399.9)
    assert event.discount_percentage == pytest.approx(14.26)


@pytest.mark.asyncio
async def test_explicit_selector_mode(store, products):
    scraper = fake_scraper(
        {
            products[0].url: ok(2600.0),
            products[1].url: ok(180.0),
            products[2].url: ok(2999.0, ".finalPrice"),
        }
    )

    await MonitoringOrchestrator(scraper, store).run_monitoring()

    scraper.scrape_price.assert_awaited_once_with(products[2].url, ".finalPrice")
    assert scraper.scrape_price_auto.await_count == 2


@pytest.mark.asyncio
async def test_unexpected_exception_is_isolated(store, products):
    scraper = fake_scraper(
        {
            products[0].url: RuntimeError("driver morreu"),
            products[1].url: ok(140.0),
            products[2].url: ok(3100.0, ".finalPrice"),
        }
    )

    result = await MonitoringOrchestrator(scraper, store).run_monitoring()

    assert result.total_checked == 2
    assert "driver morreu" in result.errors[0]
    assert [e.product_id for e in result.events] == [products[1].id]


@pytest.mark.asyncio
async def test_inactive_products_are_skipped(store, products):
    store.deactivate_product(products[1].id)
    scraper = fake_scraper(
        {
            products[0].url: ok(2600.0),
            products[2].url: ok(3100.0, ".finalPrice"),
        }
    )

    result = await MonitoringOrchestrator(scraper, store).run_monitoring()

    assert result.total_checked == 2
    assert result.errors == []


@pytest.mark.asyncio
async def test_empty_store(store):
    scraper = fake_scraper({})

    result = await MonitoringOrchestrator(scraper, store).run_monitoring()

    assert result.total_checked == 0
    assert result.events == []
    scraper.scrape_price_auto.assert_not_awaited()


@pytest.mark.asyncio
async def test_notifications_are_dispatched(store, products):
    scraper = fake_scraper(
        {
            products[0].url: ok(2400.0),
            products[1].url: ok(120.0),
            products[2].url: ok(3100.0, ".finalPrice"),
        }
    )
    notifier = MagicMock()
    notifier.is_configured = True
    notifier.send_price_alert.side_effect = [True, False]

    result = await MonitoringOrchestrator(scraper, store, notifier).run_monitoring()

    assert notifier.send_price_alert.call_count == 2
    sent_event, sent_product = notifier.send_price_alert.call_args_list[0].args
    assert sent_product.id == sent_event.product_id == products[0].id
    assert result.errors == ["Falha ao enviar alerta para Fone Bluetooth"]


@pytest.mark.asyncio
async def test_unconfigured_notifier_is_not_called(store, products):
    scraper = fake_scraper(
        {
            products[0].url: ok(2400.0),
            products[1].url: ok(200.0),
            products[2].url: ok(3100.0, ".finalPrice"),
        }
    )
    notifier = MagicMock()
    notifier.is_configured = False

    result = await MonitoringOrchestrator(scraper, store, notifier).run_monitoring()

    notifier.send_price_alert.assert_not_called()
    assert len(result.events) == 1


@pytest.mark.asyncio
async def test_messages_track_progress(store, products):
    scraper = fake_scraper({p.url: ok(5000.0) for p in products})
    orchestrator = MonitoringOrchestrator(scraper, store)

    state = await orchestrator.graph.ainvoke(
        {
            "user_id": None,
            "pending": [],
            "position": 0,
            "checked": [],
            "events": [],
            "errors": [],
            "notified": 0,
            "messages": [],
        }
    )

    assert len(state["messages"]) == len(products) + 2
    assert state["messages"][-1].content.startswith("Ciclo concluído")


class TestScheduler:
    @pytest.mark.asyncio
    async def test_runs_requested_cycles(self, store, products):
        orchestrator = MagicMock()
        orchestrator.run_monitoring = AsyncMock(return_value=MonitoringResult())
        scheduler = PriceMonitorScheduler(orchestrator, store, interval_minutes=0.0001)

        await scheduler.start(max_cycles=2)

        assert orchestrator.run_monitoring.await_count == 2
        assert scheduler.cycles_run == 2
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_stop_ends_loop_after_current_cycle(self, store, products):
        orchestrator = MagicMock()
        scheduler = PriceMonitorScheduler(orchestrator, store, interval_minutes=60)

        async def cycle():
            scheduler.stop()
            return MonitoringResult()

        orchestrator.run_monitoring = AsyncMock(side_effect=cycle)

        await scheduler.start()

        assert scheduler.cycles_run == 1

    @pytest.mark.asyncio
    async def test_empty_store_skips_cycle(self, store):
        orchestrator = MagicMock()
        orchestrator.run_monitoring = AsyncMock()
        scheduler = PriceMonitorScheduler(orchestrator, store)

        assert await scheduler.run_cycle() is None
        orchestrator.run_monitoring.assert_not_awaited()

    def test_invalid_interval(self, store):
        with pytest.raises(ValueError):
            PriceMonitorScheduler(MagicMock(), store, interval_minutes=0)

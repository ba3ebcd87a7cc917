"""
Testes do orquestrador de extração com estratégias de fetch falsas.
"""

import time

import pytest

from price_monitor.models import CandidateKind, ErrorKind
from price_monitor.scrapers import (
    FetchStrategyChain,
    PriceScraper,
    SelectorBank,
    SelectorTelemetry,
    extract_price_auto,
    extract_price_with_selector,
)
from conftest import make_page


URL = "https://www.amazon.com.br/dp/B0CHX1W1XY"


def scraper_for(*fetchers, telemetry=None) -> PriceScraper:
    return PriceScraper(fetch_chain=FetchStrategyChain(fetchers), telemetry=telemetry)


class TestExtractPriceAuto:
    def test_amazon_whole_price(self, amazon_page):
        attempt = extract_price_auto(amazon_page)
        assert attempt.success
        assert attempt.price == pytest.approx(899.94)
        assert attempt.selector == ".a-price-whole"
        assert attempt.candidate_kind == CandidateKind.CSS

    def test_current_price_wins_over_struck_was_price(self, was_and_current_page):
        attempt = extract_price_auto(was_and_current_page)
        assert attempt.price == pytest.approx(899.94)
        assert attempt.selector == ".price-current"

    def test_rank_beats_document_order_and_magnitude(self):
        html = make_page(
            '<span class="price">R$ 1.200,00</span>'
            '<span class="sale-price">R$ 899,94</span>'
        )
        attempt = extract_price_auto(html)
        assert attempt.price == pytest.approx(899.94)
        assert attempt.selector == ".sale-price"

    def test_json_ld_before_generic_guess(self):
        html = make_page(
            '<script type="application/ld+json">'
            '{"@type": "Product", "offers": {"price": "1549.00", "priceCurrency": "BRL"}}'
            "</script>"
            '<span class="price">R$ 19,90</span>'
        )
        attempt = extract_price_auto(html)
        assert attempt.price == pytest.approx(1549.0)
        assert attempt.candidate_kind == CandidateKind.JSON_LD

    def test_text_scan_is_last_resort(self):
        html = make_page('<section class="buy-box"><strong>R$ 2.349,90</strong></section>')
        attempt = extract_price_auto(html)
        assert attempt.price == pytest.approx(2349.9)
        assert attempt.candidate_kind == CandidateKind.TEXT_SCAN
        assert attempt.selector == "strong"

    def test_unparseable_match_falls_through_to_next_candidate(self):
        html = make_page(
            '<span class="price-current">Indisponível</span>'
            '<span class="price">R$ 49,90</span>'
        )
        attempt = extract_price_auto(html)
        assert attempt.price == pytest.approx(49.9)
        assert attempt.selector == ".price"

    def test_no_price_reports_no_selector_match(self, no_price_page):
        attempt = extract_price_auto(no_price_page)
        assert not attempt.success
        assert attempt.error == ErrorKind.NO_SELECTOR_MATCH

    def test_custom_bank_is_used(self):
        bank = SelectorBank()
        bank.append(".preco-exclusivo")
        html = make_page(
            '<span class="preco-exclusivo">R$ 10,00</span><span class="price">R$ 20,00</span>'
        )
        assert extract_price_auto(html, bank).price == pytest.approx(10.0)


class TestExtractWithSelector:
    def test_nonexistent_selector(self, amazon_page):
        attempt = extract_price_with_selector(amazon_page, ".nonexistent")
        assert attempt.error == ErrorKind.NO_SELECTOR_MATCH

    def test_element_without_price(self):
        html = make_page('<span class="preco">Consulte</span>')
        attempt = extract_price_with_selector(html, ".preco")
        assert attempt.error == ErrorKind.NORMALIZATION_FAILED
        assert attempt.raw_text == "Consulte"

    def test_invalid_selector_is_no_match(self, amazon_page):
        attempt = extract_price_with_selector(amazon_page, "span[[")
        assert attempt.error == ErrorKind.NO_SELECTOR_MATCH


class TestPriceScraper:
    @pytest.mark.asyncio
    async def test_scrape_price_auto_scenario(self, fake_fetcher, amazon_page):
        scraper = scraper_for(fake_fetcher("fake", html=amazon_page))

        result = await scraper.scrape_price_auto(URL)

        assert result.success is True
        assert result.price == pytest.approx(899.94)
        assert result.selector == ".a-price-whole"
        assert result.strategy == "fake"
        assert result.error is None

    @pytest.mark.asyncio
    async def test_repeated_runs_are_deterministic(self, fake_fetcher, was_and_current_page):
        scraper = scraper_for(fake_fetcher("fake", html=was_and_current_page))

        results = [await scraper.scrape_price_auto(URL) for _ in range(3)]

        assert {(r.price, r.selector) for r in results} == {(899.94, ".price-current")}

    @pytest.mark.asyncio
    async def test_explicit_nonexistent_selector(self, fake_fetcher, amazon_page):
        scraper = scraper_for(fake_fetcher("fake", html=amazon_page))

        result = await scraper.scrape_price(URL, ".nonexistent")

        assert result.success is False
        assert result.error == "NoSelectorMatch"

    @pytest.mark.asyncio
    async def test_explicit_selector_success(self, fake_fetcher, was_and_current_page):
        scraper = scraper_for(fake_fetcher("fake", html=was_and_current_page))

        result = await scraper.scrape_price(URL, ".price-current")

        assert result.success
        assert result.price == pytest.approx(899.94)
        assert result.selector == ".price-current"

    @pytest.mark.asyncio
    async def test_auto_keyword_delegates_to_detection(self, fake_fetcher, amazon_page):
        scraper = scraper_for(fake_fetcher("fake", html=amazon_page))

        result = await scraper.scrape_price(URL, "auto")

        assert result.selector == ".a-price-whole"

    @pytest.mark.asyncio
    async def test_all_strategies_failing(self, fake_fetcher):
        scraper = scraper_for(
            fake_fetcher("selenium", error=ErrorKind.FETCH_BLOCKED),
            fake_fetcher("playwright", error=ErrorKind.FETCH_TIMEOUT),
            fake_fetcher("http", raises=ConnectionResetError("reset")),
        )

        result = await scraper.scrape_price_auto(URL)

        assert result.success is False
        assert result.error == "AllStrategiesExhausted"
        assert result.price is None

    @pytest.mark.asyncio
    async def test_failure_is_bounded_by_strategy_timeouts(self, fake_fetcher):
        scraper = scraper_for(
            fake_fetcher("lento-1", html="<html></html>", delay=5, timeout=0.05),
            fake_fetcher("lento-2", html="<html></html>", delay=5, timeout=0.05),
        )

        started = time.monotonic()
        result = await scraper.scrape_price_auto(URL)

        assert time.monotonic() - started < 1.0
        assert result.error == "AllStrategiesExhausted"

    @pytest.mark.asyncio
    async def test_invalid_url_skips_fetch(self, fake_fetcher, amazon_page):
        fetcher = fake_fetcher("fake", html=amazon_page)
        scraper = scraper_for(fetcher)

        result = await scraper.scrape_price_auto("ftp://exemplo/produto")

        assert result.error == "FetchFailed"
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_telemetry_records_attempts(self, fake_fetcher, amazon_page, no_price_page):
        telemetry = SelectorTelemetry()
        found = scraper_for(fake_fetcher("fake", html=amazon_page), telemetry=telemetry)
        missing = scraper_for(fake_fetcher("fake", html=no_price_page), telemetry=telemetry)

        await found.scrape_price_auto(URL)
        await missing.scrape_price_auto(URL)

        stats = telemetry.stats("amazon.com.br")
        assert stats["total_attempts"] == 2
        assert stats["success_rate"] == 50.0
        assert stats["best_selectors"] == [".a-price-whole"]

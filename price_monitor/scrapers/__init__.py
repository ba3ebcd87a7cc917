from .base_fetcher import BaseFetcher
from .selenium_fetcher import SeleniumFetcher
from .playwright_fetcher import PlaywrightFetcher
from .http_fetcher import HttpFetcher
from .fetch_chain import FetchStrategyChain
from .selector_bank import SelectorBank, CandidateMatch, match_candidate
from .price_normalizer import normalize_price, format_brl
from .telemetry import SelectorTelemetry
from .price_scraper import (
    PriceScraper,
    extract_price_auto,
    extract_price_with_selector,
)

__all__ = [
    "BaseFetcher",
    "SeleniumFetcher",
    "PlaywrightFetcher",
    "HttpFetcher",
    "FetchStrategyChain",
    "SelectorBank",
    "CandidateMatch",
    "match_candidate",
    "normalize_price",
    "format_brl",
    "SelectorTelemetry",
    "PriceScraper",
    "extract_price_auto",
    "extract_price_with_selector",
]

"""
Orquestrador da extração de preço.

Combina a cadeia de estratégias de fetch, o banco de seletores e o
normalizador. Falhas comuns ("preço não encontrado", bloqueio, timeout)
nunca levantam exceção: são devolvidas como ScrapeResult com o motivo.
"""

import time
from typing import Optional, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from loguru import logger

from .fetch_chain import FetchStrategyChain
from .price_normalizer import normalize_price
from .selector_bank import SelectorBank, safe_select, current_text, match_candidate
from .telemetry import SelectorTelemetry
from ..models import (
    CandidateKind,
    ErrorKind,
    ScrapeAttempt,
    ScrapeResult,
    ScraperSettings,
)
from ..utils.site_detection import extract_domain


def is_valid_url(url: Optional[str]) -> bool:
    if not url or not isinstance(url, str):
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def extract_price_auto(
    html: str, selector_bank: Optional[SelectorBank] = None
) -> ScrapeAttempt:
    """
    Percorre o banco de seletores em ordem e devolve o primeiro preço válido.

    Args:
        html: Documento renderizado
        selector_bank: Banco a usar (padrão: SelectorBank.default())

    Returns:
        ScrapeAttempt com preço, seletor e tipo do candidato, ou com
        NoSelectorMatch quando nenhum candidato produz preço válido
    """
    bank = selector_bank or SelectorBank.default()
    soup = BeautifulSoup(html or "", "html.parser")
    matched_any = 0

    for candidate in bank:
        matches = match_candidate(soup, candidate)
        if not matches:
            continue
        matched_any += 1

        for match in matches:
            price = normalize_price(match.text)
            if price is not None:
                logger.debug(
                    f"Candidato #{candidate.rank} ({candidate.kind.value}) "
                    f"'{match.selector}' -> {price}"
                )
                return ScrapeAttempt(
                    url="",
                    html_length=len(html or ""),
                    selector=match.selector,
                    candidate_kind=candidate.kind,
                    raw_text=match.text,
                    price=price,
                    success=True,
                )

    return ScrapeAttempt(
        url="",
        html_length=len(html or ""),
        success=False,
        error=ErrorKind.NO_SELECTOR_MATCH,
        detail=f"{len(bank)} candidatos avaliados, {matched_any} com elementos mas sem preço válido",
    )


def extract_price_with_selector(html: str, selector: str) -> ScrapeAttempt:
    """Aplica apenas o seletor informado pelo usuário"""
    soup = BeautifulSoup(html or "", "html.parser")
    elements = safe_select(soup, selector)

    if not elements:
        return ScrapeAttempt(
            url="",
            html_length=len(html or ""),
            selector=selector,
            success=False,
            error=ErrorKind.NO_SELECTOR_MATCH,
            detail=f"Nenhum elemento encontrado para '{selector}'",
        )

    texts = []
    for element in elements:
        text = current_text(element)
        texts.append(text)
        price = normalize_price(text)
        if price is not None:
            return ScrapeAttempt(
                url="",
                html_length=len(html or ""),
                selector=selector,
                candidate_kind=CandidateKind.CSS,
                raw_text=text,
                price=price,
                success=True,
            )

    sample = next((t for t in texts if t), "")
    return ScrapeAttempt(
        url="",
        html_length=len(html or ""),
        selector=selector,
        raw_text=sample[:100] or None,
        success=False,
        error=ErrorKind.NORMALIZATION_FAILED,
        detail=f"{len(elements)} elemento(s) encontrados, nenhum com preço válido",
    )


class PriceScraper:
    """Extrai o preço atual de uma página de produto"""

    def __init__(
        self,
        fetch_chain: Optional[FetchStrategyChain] = None,
        selector_bank: Optional[SelectorBank] = None,
        telemetry: Optional[SelectorTelemetry] = None,
        settings: Optional[ScraperSettings] = None,
    ):
        self.settings = settings or ScraperSettings()
        self.fetch_chain = fetch_chain or FetchStrategyChain.from_settings(self.settings)
        self.selector_bank = selector_bank or SelectorBank.default()
        self.telemetry = telemetry

    async def _fetch(self, url: str) -> Tuple[Optional[str], Optional[str], Optional[ScrapeAttempt]]:
        """Retorna (html, estratégia, falha)"""
        if not is_valid_url(url):
            logger.error(f"URL inválida: {url}")
            return None, None, ScrapeAttempt(
                url=str(url),
                success=False,
                error=ErrorKind.FETCH_FAILED,
                detail="URL inválida (esperado http:// ou https:// absoluto)",
            )

        result = await self.fetch_chain.fetch(url)
        if not result.success:
            return None, result.strategy, ScrapeAttempt(
                url=url,
                strategy=result.strategy,
                success=False,
                error=result.error or ErrorKind.ALL_STRATEGIES_EXHAUSTED,
                detail=result.detail,
            )
        return result.html, result.strategy, None

    def _finish(self, attempt: ScrapeAttempt, started: float) -> ScrapeResult:
        elapsed = time.time() - started
        if attempt.success:
            logger.success(
                f"Preço encontrado: R$ {attempt.price:.2f} via {attempt.selector} "
                f"({attempt.strategy}) em {elapsed:.2f}s"
            )
        else:
            logger.warning(
                f"Falha na extração de {attempt.url}: {attempt.error.value} - {attempt.detail}"
            )
        logger.debug(f"Tentativa: {attempt.model_dump(exclude={'raw_text'})}")

        if self.telemetry is not None and attempt.strategy:
            self.telemetry.record(
                extract_domain(attempt.url), attempt.selector, attempt.success, attempt.price
            )
        return attempt.to_result()

    async def scrape_price_auto(self, url: str) -> ScrapeResult:
        """Detecção automática: percorre o banco de seletores inteiro"""
        started = time.time()
        logger.info(f"Extraindo preço (automático): {url}")

        html, strategy, failure = await self._fetch(url)
        if failure:
            return self._finish(failure, started)

        attempt = extract_price_auto(html, self.selector_bank)
        attempt = attempt.model_copy(update={"url": url, "strategy": strategy})
        return self._finish(attempt, started)

    async def scrape_price(self, url: str, selector: str) -> ScrapeResult:
        """Seletor explícito: avalia somente o seletor informado"""
        if not selector or selector.strip().lower() == "auto":
            return await self.scrape_price_auto(url)

        started = time.time()
        logger.info(f"Extraindo preço com seletor '{selector}': {url}")

        html, strategy, failure = await self._fetch(url)
        if failure:
            return self._finish(failure, started)

        attempt = extract_price_with_selector(html, selector.strip())
        attempt = attempt.model_copy(update={"url": url, "strategy": strategy})
        return self._finish(attempt, started)

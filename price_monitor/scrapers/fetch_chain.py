"""
Cadeia de estratégias de obtenção de HTML.

Tenta cada estratégia na ordem configurada até que uma devolva um documento
utilizável. Timeouts, bloqueios e erros de uma estratégia nunca interrompem
a cadeia: apenas fazem a próxima ser tentada.
"""

import asyncio
from typing import List, Optional, Sequence

from loguru import logger

from .base_fetcher import BaseFetcher
from .http_fetcher import HttpFetcher
from .playwright_fetcher import PlaywrightFetcher
from .selenium_fetcher import SeleniumFetcher
from ..models import ErrorKind, FetcherConfig, FetchResult, ScraperSettings


STRATEGY_NAMES = ("selenium", "playwright", "http")


class FetchStrategyChain:
    """Executa as estratégias em ordem fixa, parando na primeira com sucesso"""

    def __init__(self, strategies: Sequence[BaseFetcher]):
        if not strategies:
            raise ValueError("A cadeia precisa de ao menos uma estratégia")
        self._strategies = tuple(strategies)

    @property
    def strategies(self) -> List[BaseFetcher]:
        return list(self._strategies)

    @classmethod
    def from_settings(cls, settings: Optional[ScraperSettings] = None) -> "FetchStrategyChain":
        """Monta a cadeia a partir de ScraperSettings"""
        settings = settings or ScraperSettings()
        headers = {"User-Agent": settings.user_agent}
        strategies = []

        for name in settings.fetch_strategies:
            if name == "selenium":
                strategies.append(
                    SeleniumFetcher(
                        FetcherConfig(
                            name="selenium-chrome",
                            headers=headers,
                            timeout=settings.headless_timeout,
                            settle_delay=settings.settle_delay,
                        )
                    )
                )
            elif name == "playwright":
                strategies.append(
                    PlaywrightFetcher(
                        FetcherConfig(
                            name=f"playwright-{settings.playwright_browser}",
                            headers=headers,
                            timeout=settings.headless_timeout,
                            settle_delay=settings.settle_delay,
                            browser_type=settings.playwright_browser,
                        )
                    )
                )
            elif name == "http":
                strategies.append(
                    HttpFetcher(
                        FetcherConfig(
                            name="http",
                            headers=headers,
                            timeout=settings.http_timeout,
                            settle_delay=0,
                        )
                    )
                )
            else:
                raise ValueError(
                    f"Estratégia desconhecida: {name} (opções: {', '.join(STRATEGY_NAMES)})"
                )

        return cls(strategies)

    async def _run(self, strategy: BaseFetcher, url: str) -> FetchResult:
        try:
            return await asyncio.wait_for(
                strategy.attempt(url), timeout=strategy.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"{strategy.name}: tempo esgotado para {url}")
            return FetchResult.failure(
                ErrorKind.FETCH_TIMEOUT,
                f"{strategy.name} excedeu {strategy.timeout:.0f}s",
                strategy=strategy.name,
            )
        except Exception as e:
            logger.error(f"{strategy.name}: erro inesperado: {str(e)}")
            return FetchResult.failure(
                ErrorKind.FETCH_FAILED,
                f"{type(e).__name__}: {str(e)}",
                strategy=strategy.name,
            )

    async def fetch(self, url: str) -> FetchResult:
        """
        Obtém o HTML da URL usando a primeira estratégia que funcionar.

        Returns:
            FetchResult de sucesso com o nome da estratégia, ou falha
            AllStrategiesExhausted com o histórico de tentativas
        """
        attempts = []

        for strategy in self._strategies:
            result = await self._run(strategy, url)
            strategy_name = result.strategy or strategy.name

            if result.success and result.html:
                result.attempts = attempts + [{"strategy": strategy_name, "outcome": "ok"}]
                return result

            error = result.error or ErrorKind.FETCH_FAILED
            attempts.append(
                {
                    "strategy": strategy_name,
                    "outcome": error.value,
                    "detail": result.detail or "",
                }
            )
            logger.warning(
                f"Estratégia {strategy_name} falhou ({error.value}), tentando a próxima"
            )

        summary = "; ".join(f"{a['strategy']}: {a['outcome']}" for a in attempts)
        logger.error(f"Todas as estratégias falharam para {url}: {summary}")
        exhausted = FetchResult.failure(
            ErrorKind.ALL_STRATEGIES_EXHAUSTED,
            summary,
            strategy=attempts[-1]["strategy"],
        )
        exhausted.attempts = attempts
        return exhausted

import asyncio
from typing import Optional

import requests
from loguru import logger

from .base_fetcher import BaseFetcher, DEFAULT_HEADERS
from ..models import ErrorKind, FetcherConfig, FetchResult


class HttpFetcher(BaseFetcher):
    """Requisição HTTP simples, sem execução de JavaScript"""

    def __init__(
        self,
        fetcher_config: Optional[FetcherConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(fetcher_config or FetcherConfig(name="http", timeout=15.0))
        self.session = session or requests.Session()
        headers = dict(DEFAULT_HEADERS)
        headers.update(self.config.headers or {})
        headers.setdefault("User-Agent", self.user_agent)
        self.session.headers.update(headers)

    def _get(self, url: str) -> requests.Response:
        return self.session.get(url, timeout=self.timeout, allow_redirects=True)

    async def attempt(self, url: str) -> FetchResult:
        logger.info(f"Iniciando requisição HTTP: {url}")
        loop = asyncio.get_running_loop()

        try:
            response = await loop.run_in_executor(None, self._get, url)
            return self.result_from_html(response.text, status_code=response.status_code)

        except requests.exceptions.Timeout:
            logger.error(f"Timeout na requisição HTTP: {url}")
            return FetchResult.failure(
                ErrorKind.FETCH_TIMEOUT,
                f"HTTP excedeu {self.timeout:.0f}s",
                strategy=self.name,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Erro na requisição para {url}: {str(e)}")
            return FetchResult.failure(
                ErrorKind.FETCH_FAILED, f"HTTP: {str(e)}", strategy=self.name
            )

from abc import ABC, abstractmethod
from typing import Optional

from bs4 import BeautifulSoup
from loguru import logger

from ..models import ErrorKind, FetcherConfig, FetchResult


DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Cache-Control": "max-age=0",
}

# Indícios de página de desafio anti-bot
CHALLENGE_INDICATORS = [
    "captcha",
    "robot check",
    "are you a robot",
    "não sou um robô",
    "nao sou um robo",
    "verify you are human",
    "verifique se você é humano",
    "access denied",
    "acesso negado",
    "attention required",
    "just a moment",
    "request blocked",
]

MIN_HTML_LENGTH = 200
SHORT_PAGE_TEXT = 1500


class BaseFetcher(ABC):
    """Estratégia base para obter o HTML renderizado de uma URL"""

    def __init__(self, fetcher_config: FetcherConfig):
        self.config = fetcher_config

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def timeout(self) -> float:
        return self.config.timeout

    @property
    def user_agent(self) -> str:
        headers = self.config.headers or {}
        return headers.get(
            "User-Agent",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
        )

    @abstractmethod
    async def attempt(self, url: str) -> FetchResult:
        """Tenta obter o HTML; nunca lança exceção para falhas comuns"""
        pass

    def detect_block(self, html: Optional[str]) -> Optional[str]:
        """Retorna o motivo se o HTML parecer bloqueio/desafio anti-bot"""
        if not html or len(html.strip()) < MIN_HTML_LENGTH:
            return "documento vazio ou muito curto"

        soup = BeautifulSoup(html, "html.parser")
        title = soup.title.get_text(" ", strip=True).lower() if soup.title else ""
        for indicator in CHALLENGE_INDICATORS:
            if indicator in title:
                return f"página de desafio detectada no título: '{indicator}'"

        body = soup.body or soup
        text = " ".join(body.get_text(" ").split()).lower()
        if len(text) < SHORT_PAGE_TEXT:
            for indicator in CHALLENGE_INDICATORS:
                if indicator in text:
                    return f"página de desafio detectada: '{indicator}'"

        return None

    def result_from_html(self, html: str, status_code: Optional[int] = None) -> FetchResult:
        """Converte o HTML obtido em resultado, verificando bloqueios"""
        if status_code is not None and status_code >= 400:
            logger.warning(f"{self.name}: status HTTP {status_code}")
            return FetchResult.failure(
                ErrorKind.FETCH_BLOCKED,
                f"HTTP {status_code}",
                strategy=self.name,
                status_code=status_code,
            )

        blocked = self.detect_block(html)
        if blocked:
            logger.warning(f"{self.name}: {blocked}")
            return FetchResult.failure(
                ErrorKind.FETCH_BLOCKED, blocked, strategy=self.name, status_code=status_code
            )

        logger.success(f"{self.name}: HTML obtido ({len(html)} caracteres)")
        return FetchResult.ok(html, self.name, status_code=status_code)

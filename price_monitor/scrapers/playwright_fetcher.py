from typing import Optional

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .base_fetcher import BaseFetcher, DEFAULT_HEADERS
from ..models import ErrorKind, FetcherConfig, FetchResult


SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
]


class PlaywrightFetcher(BaseFetcher):
    """Renderiza a página com um navegador controlado pelo Playwright"""

    def __init__(self, fetcher_config: Optional[FetcherConfig] = None):
        super().__init__(fetcher_config or FetcherConfig(name="playwright"))
        if self.config.browser_type not in SUPPORTED_BROWSERS:
            raise ValueError(f"Navegador não suportado: {self.config.browser_type}")

    async def attempt(self, url: str) -> FetchResult:
        logger.info(f"Iniciando renderização com Playwright ({self.config.browser_type}): {url}")
        timeout_ms = int(self.timeout * 1000)

        try:
            async with async_playwright() as p:
                launcher = getattr(p, self.config.browser_type)
                launch_args = LAUNCH_ARGS if self.config.browser_type == "chromium" else []
                browser = await launcher.launch(headless=self.config.headless, args=launch_args)

                try:
                    extra_headers = {
                        k: v
                        for k, v in (self.config.headers or DEFAULT_HEADERS).items()
                        if k != "User-Agent"
                    }
                    context = await browser.new_context(
                        user_agent=self.user_agent,
                        locale="pt-BR",
                        viewport={"width": 1920, "height": 1080},
                        extra_http_headers=extra_headers,
                    )
                    context.set_default_timeout(timeout_ms)
                    page = await context.new_page()

                    response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
                    status_code = response.status if response else None

                    # Conteúdo dinâmico: espera a rede acalmar, sem falhar se nunca acalmar
                    try:
                        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
                    except PlaywrightTimeoutError:
                        logger.debug("Rede não ficou ociosa, seguindo com o conteúdo atual")

                    await page.wait_for_timeout(self.config.settle_delay * 1000)
                    html = await page.content()
                finally:
                    await browser.close()

            return self.result_from_html(html, status_code=status_code)

        except PlaywrightTimeoutError:
            logger.error(f"Timeout ao carregar página com Playwright: {url}")
            return FetchResult.failure(
                ErrorKind.FETCH_TIMEOUT,
                f"Playwright excedeu {self.timeout:.0f}s",
                strategy=self.name,
            )
        except PlaywrightError as e:
            logger.error(f"Erro no Playwright: {str(e)}")
            return FetchResult.failure(
                ErrorKind.FETCH_FAILED, f"Playwright: {e.message}", strategy=self.name
            )

import asyncio
import threading
from typing import Optional

from loguru import logger
from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.support.ui import WebDriverWait

from .base_fetcher import BaseFetcher
from ..models import ErrorKind, FetcherConfig, FetchResult


class SeleniumFetcher(BaseFetcher):
    """Renderiza a página com Chrome headless via Selenium"""

    def __init__(self, fetcher_config: Optional[FetcherConfig] = None):
        super().__init__(fetcher_config or FetcherConfig(name="selenium-chrome"))

    def _create_webdriver(self) -> webdriver.Chrome:
        """Cria instância do WebDriver Chrome"""
        chrome_options = Options()
        if self.config.headless:
            chrome_options.add_argument("--headless=new")
        chrome_options.add_argument("--no-sandbox")
        chrome_options.add_argument("--disable-dev-shm-usage")
        chrome_options.add_argument("--disable-gpu")
        chrome_options.add_argument("--disable-blink-features=AutomationControlled")
        chrome_options.add_argument("--window-size=1920,1080")
        chrome_options.add_argument("--lang=pt-BR")
        chrome_options.add_argument(f"--user-agent={self.user_agent}")
        chrome_options.add_experimental_option("excludeSwitches", ["enable-automation"])
        chrome_options.add_experimental_option("useAutomationExtension", False)

        driver = webdriver.Chrome(options=chrome_options)
        try:
            driver.set_page_load_timeout(self.timeout)
            # Esconde a flag de automação antes de qualquer script da página
            driver.execute_cdp_cmd(
                "Page.addScriptToEvaluateOnNewDocument",
                {
                    "source": "Object.defineProperty(navigator, 'webdriver', {get: () => undefined})"
                },
            )
            driver.execute_cdp_cmd(
                "Network.setUserAgentOverride", {"userAgent": self.user_agent}
            )
        except WebDriverException:
            driver.quit()
            raise
        return driver

    @staticmethod
    def _quit(driver):
        if driver is None:
            return
        try:
            driver.quit()
        except WebDriverException as e:
            logger.debug(f"Erro ao encerrar WebDriver: {str(e)}")

    def _render(self, url: str, holder: dict, cancelled: threading.Event) -> Optional[str]:
        """
        Executado em thread: abre o Chrome, carrega a página e devolve o HTML.

        O driver fica em ``holder`` enquanto está vivo; quem retirá-lo de lá
        (esta thread ou ``attempt`` após timeout) é quem o encerra. Com
        ``cancelled`` sinalizado a thread para na próxima etapa.
        """
        try:
            driver = self._create_webdriver()
            holder["driver"] = driver
            if cancelled.is_set():
                return None

            driver.get(url)
            if cancelled.is_set():
                return None

            # Aguarda o documento completo, depois o tempo de acomodação
            WebDriverWait(driver, self.timeout).until(
                lambda d: d.execute_script("return document.readyState") == "complete"
            )
            if cancelled.wait(self.config.settle_delay):
                return None

            return driver.page_source
        except WebDriverException:
            if cancelled.is_set():
                # Driver já encerrado por attempt()
                return None
            raise
        finally:
            self._quit(holder.pop("driver", None))

    async def attempt(self, url: str) -> FetchResult:
        logger.info(f"Iniciando renderização com Selenium: {url}")
        holder = {}
        cancelled = threading.Event()
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self._render, url, holder, cancelled)

        try:
            html = await asyncio.wait_for(future, timeout=self.timeout)
            return self.result_from_html(html)

        except (asyncio.TimeoutError, TimeoutException):
            logger.error(f"Timeout ao carregar página com Selenium: {url}")
            return FetchResult.failure(
                ErrorKind.FETCH_TIMEOUT,
                f"Selenium excedeu {self.timeout:.0f}s",
                strategy=self.name,
            )
        except WebDriverException as e:
            logger.error(f"Erro no WebDriver: {str(e)}")
            return FetchResult.failure(
                ErrorKind.FETCH_FAILED, f"WebDriver: {e.msg or str(e)}", strategy=self.name
            )
        finally:
            # Timeout ou cancelamento: a thread pode ainda estar abrindo o Chrome
            cancelled.set()
            driver = holder.pop("driver", None)
            if driver is not None:
                await loop.run_in_executor(None, self._quit, driver)

"""
Fixtures compartilhadas dos testes.

As páginas HTML são montadas sobre um esqueleto comum com texto suficiente
para não serem confundidas com uma página vazia ou de desafio anti-bot.
"""

import asyncio
from typing import Optional

import pytest

from price_monitor.models import ErrorKind, FetcherConfig, FetchResult
from price_monitor.scrapers import BaseFetcher


PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="pt-BR">
<head>
  <meta charset="utf-8">
  <title>{title}</title>
</head>
<body>
  <header class="site-header"><nav class="menu"><a href="/">Início</a> <a href="/ofertas">Ofertas</a></nav></header>
  <main>
    <h1 class="product-title">{title}</h1>
    <div class="product-description">
      <p>Produto original com garantia de doze meses do fabricante. Nota fiscal
      inclusa e envio em embalagem reforçada para todo o território nacional.</p>
    </div>
    {body}
  </main>
  <footer class="site-footer"><p>Loja Exemplo LTDA - Todos os direitos reservados</p></footer>
</body>
</html>
"""


def make_page(body: str, title: str = "Smartphone Galaxy S24 128GB") -> str:
    return PAGE_TEMPLATE.format(title=title, body=body)


@pytest.fixture
def amazon_page():
    return make_page(
        '<div id="apex_desktop"><span class="a-price-whole">R$ 899,94</span></div>'
    )


@pytest.fixture
def was_and_current_page():
    return make_page(
        """
        <div class="product-prices">
          <span class="price-old"><s>de R$ 1.200,00</s></span>
          <span class="price-current">por R$ 899,94</span>
        </div>
        """
    )


@pytest.fixture
def no_price_page():
    return make_page('<div class="product-info"><p>Produto indisponível no momento.</p></div>')


@pytest.fixture
def challenge_page():
    return """<!DOCTYPE html>
<html><head><title>Robot Check</title></head>
<body><p>Digite os caracteres que você vê abaixo. Desculpe, precisamos ter certeza
de que você não é um robô. Para obter os melhores resultados, verifique se o seu
navegador está aceitando cookies.</p></body></html>
"""


class FakeFetcher(BaseFetcher):
    """Estratégia de fetch programável para os testes"""

    def __init__(
        self,
        name: str,
        html: Optional[str] = None,
        error: Optional[ErrorKind] = None,
        raises: Optional[Exception] = None,
        delay: float = 0.0,
        timeout: float = 5.0,
    ):
        super().__init__(FetcherConfig(name=name, timeout=timeout))
        self.html = html
        self.error = error
        self.raises = raises
        self.delay = delay
        self.calls = []

    async def attempt(self, url: str) -> FetchResult:
        self.calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        if self.error is not None:
            return FetchResult.failure(self.error, f"{self.name} falhou", strategy=self.name)
        return self.result_from_html(self.html)


@pytest.fixture
def fake_fetcher():
    """Fábrica de FakeFetcher"""
    return FakeFetcher

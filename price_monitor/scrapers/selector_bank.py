import json
import re
from typing import Iterator, List, NamedTuple, Optional

from bs4 import BeautifulSoup, Comment, Tag
from loguru import logger
from soupsieve import SelectorSyntaxError

from ..models import CandidateKind, SelectorCandidate


class CandidateMatch(NamedTuple):
    """Texto encontrado por um candidato e o seletor que identifica o elemento"""

    text: str
    selector: str


# Seletores específicos por marketplace, na ordem em que devem ser avaliados
SITE_SELECTORS = {
    "amazon": [
        "#corePrice_feature_div .a-price .a-offscreen",
        ".a-price.priceToPay .a-offscreen",
        ".a-price.apexPriceToPay .a-offscreen",
        "#priceblock_dealprice",
        "#priceblock_ourprice",
        ".a-price .a-offscreen",
        ".a-price-whole",
        "#kindle-price",
        ".a-size-medium.a-color-price",
        ".a-size-base.a-color-price",
    ],
    "mercadolivre": [
        ".ui-pdp-price__second-line .andes-money-amount",
        ".poly-price__current .andes-money-amount",
        ".ui-pdp-price__second-line .andes-money-amount__fraction",
        ".andes-money-amount:not(.andes-money-amount--previous)",
        ".price-tag-amount",
        ".ui-pdp-price__fraction",
        ".price-tag-fraction",
    ],
    "magazineluiza": [
        '[data-testid="price-value"]',
        ".price-template__text",
        ".price-info__main-value",
        ".price-info__value",
    ],
    "carrefour": [
        "span.text-2xl.font-bold.text-default",
        "strong.text-primary",
        ".text-primary strong",
        ".flex.items-center.gap-2 span:not(.line-through)",
    ],
    "vtex": [
        ".vtex-product-price-1-x-sellingPriceValue",
        ".vtex-product-price-1-x-sellingPrice",
        ".vtex-store-components-3-x-sellingPrice",
        ".vtex-product-price-1-x-currencyContainer",
        ".vtex-store-components-3-x-currencyContainer",
        ".vtex-product-summary-2-x-sellingPrice",
    ],
    "americanas": [
        ".sales-price",
        ".price__SalesPrice",
        ".PriceUI-module__salesPrice",
        '[class*="src__Price"]',
    ],
    "casasbahia": [
        '[data-testid="product-price-value"]',
        "#product-price",
        ".price-box__main-value",
        ".ProductPrice__current",
        ".ProductPrice__value",
        ".product-price__value",
        ".product-price__main",
    ],
    "kabum": [
        "h4.finalPrice",
        ".finalPrice",
        ".regularPrice",
    ],
    "netshoes": [
        ".default-price",
        ".showcase-price .price",
    ],
}

# Metadados estruturados: (seletor, atributo lido)
METADATA_SELECTORS = [
    ('[itemprop="price"]', "content"),
    ('meta[property="product:price:amount"]', "content"),
    ('meta[property="og:price:amount"]', "content"),
]

# Palpites genéricos por nome de classe/id
GENERIC_SELECTORS = [
    ".price-current",
    ".current-price",
    ".price-now",
    ".sale-price",
    ".selling-price",
    ".final-price",
    ".best-price",
    ".special-price",
    ".promotional-price",
    ".offer-price",
    ".price-highlight",
    ".price-value",
    ".product-price",
    ".price-box .price",
    ".price-container .price",
    ".product-info .price",
    ".price",
    ".preco",
    ".valor",
    "#price",
    "#current-price",
    "#selling-price",
    "#final-price",
    "#main-price",
    '[class*="price"]:not([class*="old"]):not([class*="original"]):not([class*="previous"])',
    '[class*="preco"]',
    ".money",
    ".amount",
]

# Heurísticas por atributos: (seletor, atributo lido ou None para texto, numérico)
ATTRIBUTE_SELECTORS = [
    ("[data-price]", "data-price", True),
    ("[data-current-price]", "data-current-price", True),
    ("[data-selling-price]", "data-selling-price", True),
    ("[data-product-price]", "data-product-price", True),
    ('[data-testid="price"]', None, False),
    ('[data-testid="current-price"]', None, False),
    ('[data-testid*="price"]', None, False),
    ('[data-cy*="price"]', None, False),
    ('[data-qa*="price"]', None, False),
    ('[aria-label*="preço"]', "aria-label", False),
    ('[aria-label*="Preço"]', "aria-label", False),
    ('[aria-label*="price"]', "aria-label", False),
]

# Escopos do escaneamento de texto: primeiro contêineres de preço, depois a página
TEXT_SCAN_SCOPES = [
    '[class*="price"], [class*="Price"], [class*="preco"], [class*="valor"], [id*="price"]',
    "body",
]

CURRENCY_SYMBOL = re.compile(r"R\$")
CURRENCY_TEXT = re.compile(r"R\$\s*\d")
INSTALLMENT_TEXT = re.compile(r"\d+\s*x\s*(de\s*)?R\$", re.IGNORECASE)
SHIPPING_TEXT = re.compile(r"\bfrete\b", re.IGNORECASE)
NUMERIC_VALUE = re.compile(r"^\d+(?:\.\d+)?$")

MAX_TEXT_LENGTH = 100

# Indícios de preço riscado ("de R$ ...") na classe do elemento ou ancestrais
STRUCK_CLASS_HINTS = (
    "line-through",
    "strike",
    "previous",
    "old-price",
    "price-old",
    "oldprice",
    "original-price",
    "price-original",
    "list-price",
    "listprice",
    "was-price",
    "price-from",
)
STRUCK_TAGS = {"s", "del", "strike"}
SKIPPED_TAGS = {"script", "style", "noscript", "template", "title", "head", "option"}
SKIPPED_CONTEXTS = (
    "footer",
    "header",
    "nav",
    "menu",
    "breadcrumb",
    "pagination",
    "cookie",
    "newsletter",
    "installment",
    "parcel",
    "shipping",
    "frete",
)
CONTEXT_TOKEN_SPLIT = re.compile(r"[\s_\-]+")
ANCESTOR_DEPTH = 4


def describe_element(element: Tag) -> str:
    """Seletor que identifica o elemento (#id, tag.classe ou tag)"""
    element_id = element.get("id")
    if element_id:
        return f"#{element_id}"
    classes = element.get("class") or []
    if classes:
        return f"{element.name}.{classes[0]}"
    return element.name


def _class_string(element: Tag) -> str:
    classes = element.get("class") or []
    return " ".join(classes).lower()


def _is_struck_node(node: Tag) -> bool:
    if node.name in STRUCK_TAGS or node.get("data-a-strike") == "true":
        return True
    classes = _class_string(node)
    return any(hint in classes for hint in STRUCK_CLASS_HINTS)


def is_struck_through(element: Tag) -> bool:
    """Verifica se o elemento faz parte de um preço antigo riscado"""
    node = element
    depth = 0
    while isinstance(node, Tag) and depth <= ANCESTOR_DEPTH:
        if _is_struck_node(node):
            return True
        node = node.parent
        depth += 1
    return False


def current_text(element: Tag) -> str:
    """Texto do elemento ignorando trechos riscados internos"""
    parts = []
    for string in element.find_all(string=True):
        if isinstance(string, Comment):
            continue
        node = string.parent
        while node is not None and node is not element and not _is_struck_node(node):
            node = node.parent
        if node is None or node is element:
            parts.append(str(string))
    return " ".join("".join(parts).replace("\xa0", " ").split())


def _in_skipped_context(element: Tag) -> bool:
    node = element
    depth = 0
    while isinstance(node, Tag) and depth <= ANCESTOR_DEPTH:
        if node.name in ("footer", "header", "nav"):
            return True
        context = f"{_class_string(node)} {str(node.get('id', '')).lower()}"
        tokens = CONTEXT_TOKEN_SPLIT.split(context)
        if any(token.startswith(hint) for token in tokens if token for hint in SKIPPED_CONTEXTS):
            return True
        node = node.parent
        depth += 1
    return False


def _canonical_number(value: str) -> str:
    """Formata números legíveis por máquina ("899.9" -> "899.90")"""
    value = value.strip()
    if NUMERIC_VALUE.match(value):
        return f"{float(value):.2f}"
    return value


def safe_select(soup: BeautifulSoup, pattern: str) -> List[Tag]:
    try:
        return soup.select(pattern)
    except (SelectorSyntaxError, NotImplementedError, ValueError) as e:
        logger.warning(f"Seletor inválido ignorado '{pattern}': {str(e)}")
        return []


def _match_css(soup: BeautifulSoup, candidate: SelectorCandidate) -> Iterator[CandidateMatch]:
    for element in safe_select(soup, candidate.pattern):
        if is_struck_through(element):
            continue
        text = current_text(element)
        if text:
            yield CandidateMatch(text, candidate.pattern)


def _match_attribute(soup: BeautifulSoup, candidate: SelectorCandidate) -> Iterator[CandidateMatch]:
    for element in safe_select(soup, candidate.pattern):
        if is_struck_through(element):
            continue

        value = None
        if candidate.attribute:
            value = element.get(candidate.attribute)
            if isinstance(value, list):
                value = " ".join(value)
            if value and candidate.numeric_value:
                value = _canonical_number(value)
        if not value:
            value = current_text(element)

        if value:
            yield CandidateMatch(value, candidate.pattern)


def _offer_prices(node) -> Iterator[str]:
    """Percorre um objeto JSON-LD procurando offers.price / lowPrice"""
    if isinstance(node, list):
        for item in node:
            yield from _offer_prices(item)
        return
    if not isinstance(node, dict):
        return

    if "@graph" in node:
        yield from _offer_prices(node["@graph"])

    offers = node.get("offers")
    if offers is not None:
        for offer in offers if isinstance(offers, list) else [offers]:
            if not isinstance(offer, dict):
                continue
            for key in ("price", "lowPrice"):
                value = offer.get(key)
                if value is not None and value != "":
                    yield str(value)
                    break
            if "priceSpecification" in offer:
                spec = offer["priceSpecification"]
                for item in spec if isinstance(spec, list) else [spec]:
                    if isinstance(item, dict) and item.get("price") is not None:
                        yield str(item["price"])


def _match_json_ld(soup: BeautifulSoup, candidate: SelectorCandidate) -> Iterator[CandidateMatch]:
    for script in safe_select(soup, candidate.pattern):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.debug(f"JSON-LD inválido ignorado: {str(e)}")
            continue

        for price in _offer_prices(data):
            yield CandidateMatch(_canonical_number(price), "json-ld:offers.price")


def _match_text_scan(soup: BeautifulSoup, candidate: SelectorCandidate) -> Iterator[CandidateMatch]:
    seen = set()
    for scope in safe_select(soup, candidate.pattern):
        for string in scope.find_all(string=CURRENCY_SYMBOL):
            if isinstance(string, Comment):
                continue
            element = string.parent
            if not isinstance(element, Tag) or id(element) in seen:
                continue
            seen.add(id(element))

            if element.name in SKIPPED_TAGS:
                continue
            text = current_text(element)
            if not text or len(text) > MAX_TEXT_LENGTH or not CURRENCY_TEXT.search(text):
                continue
            if INSTALLMENT_TEXT.search(text) or SHIPPING_TEXT.search(text):
                continue
            if is_struck_through(element) or _in_skipped_context(element):
                continue

            yield CandidateMatch(text, describe_element(element))


MATCHERS = {
    CandidateKind.CSS: _match_css,
    CandidateKind.ATTRIBUTE: _match_attribute,
    CandidateKind.JSON_LD: _match_json_ld,
    CandidateKind.TEXT_SCAN: _match_text_scan,
}


def match_candidate(soup: BeautifulSoup, candidate: SelectorCandidate) -> List[CandidateMatch]:
    """Aplica um candidato ao documento e retorna os trechos encontrados"""
    return list(MATCHERS[candidate.kind](soup, candidate))


class SelectorBank:
    """Tabela ordenada de heurísticas para localizar o preço no DOM"""

    def __init__(self, candidates: Optional[List[SelectorCandidate]] = None):
        self._candidates: List[SelectorCandidate] = []
        for candidate in sorted(candidates or [], key=lambda c: c.rank):
            self._check_duplicate(candidate.kind, candidate.pattern, candidate.attribute)
            self._candidates.append(candidate)
        self._renumber()

    def __iter__(self) -> Iterator[SelectorCandidate]:
        return iter(list(self._candidates))

    def __len__(self) -> int:
        return len(self._candidates)

    @property
    def candidates(self) -> List[SelectorCandidate]:
        return list(self._candidates)

    def _renumber(self):
        self._candidates = [
            candidate.model_copy(update={"rank": rank})
            for rank, candidate in enumerate(self._candidates)
        ]

    def _check_duplicate(self, kind: CandidateKind, pattern: str, attribute: Optional[str]):
        for existing in self._candidates:
            if (existing.kind, existing.pattern, existing.attribute) == (kind, pattern, attribute):
                raise ValueError(f"Candidato duplicado: {kind.value} {pattern}")

    def append(
        self,
        pattern: str,
        kind: CandidateKind = CandidateKind.CSS,
        site_family: Optional[str] = None,
        label: str = "",
        attribute: Optional[str] = None,
        numeric_value: bool = False,
    ) -> SelectorCandidate:
        """Adiciona um candidato ao final da fila de prioridade"""
        self._check_duplicate(kind, pattern, attribute)
        candidate = SelectorCandidate(
            rank=len(self._candidates),
            pattern=pattern,
            kind=kind,
            site_family=site_family,
            label=label or pattern,
            attribute=attribute,
            numeric_value=numeric_value,
        )
        self._candidates.append(candidate)
        return candidate

    def insert(
        self,
        before_rank: int,
        pattern: str,
        kind: CandidateKind = CandidateKind.CSS,
        site_family: Optional[str] = None,
        label: str = "",
        attribute: Optional[str] = None,
        numeric_value: bool = False,
    ) -> SelectorCandidate:
        """Insere um candidato antes do rank indicado, deslocando os demais"""
        self._check_duplicate(kind, pattern, attribute)
        position = max(0, min(before_rank, len(self._candidates)))
        candidate = SelectorCandidate(
            rank=position,
            pattern=pattern,
            kind=kind,
            site_family=site_family,
            label=label or pattern,
            attribute=attribute,
            numeric_value=numeric_value,
        )
        self._candidates.insert(position, candidate)
        self._renumber()
        return self._candidates[position]

    def find(self, pattern: str) -> Optional[SelectorCandidate]:
        for candidate in self._candidates:
            if candidate.pattern == pattern:
                return candidate
        return None

    @classmethod
    def default(cls) -> "SelectorBank":
        """Banco padrão: específicos > metadados > genéricos > atributos > texto"""
        bank = cls()

        for family, selectors in SITE_SELECTORS.items():
            for selector in selectors:
                if bank.find(selector) is None:
                    bank.append(selector, site_family=family, label=f"{family}: {selector}")

        bank.append(
            'script[type="application/ld+json"]',
            kind=CandidateKind.JSON_LD,
            label="JSON-LD offers.price",
        )
        for selector, attribute in METADATA_SELECTORS:
            bank.append(
                selector,
                kind=CandidateKind.ATTRIBUTE,
                attribute=attribute,
                numeric_value=True,
                label=f"metadado {selector}",
            )

        for selector in GENERIC_SELECTORS:
            bank.append(selector, label=f"genérico {selector}")

        for selector, attribute, numeric in ATTRIBUTE_SELECTORS:
            bank.append(
                selector,
                kind=CandidateKind.ATTRIBUTE,
                attribute=attribute,
                numeric_value=numeric,
                label=f"atributo {selector}",
            )

        for scope in TEXT_SCAN_SCOPES:
            bank.append(
                scope,
                kind=CandidateKind.TEXT_SCAN,
                label=f"texto com R$ em {scope.split(',')[0]}",
            )

        return bank

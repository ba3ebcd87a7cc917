from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


MAX_PRICE_HISTORY = 50


class ErrorKind(str, Enum):
    """Taxonomia de falhas do pipeline de extração"""

    FETCH_TIMEOUT = "FetchTimeout"
    FETCH_BLOCKED = "FetchBlocked"
    FETCH_FAILED = "FetchFailed"
    NO_SELECTOR_MATCH = "NoSelectorMatch"
    NORMALIZATION_FAILED = "NormalizationFailed"
    ALL_STRATEGIES_EXHAUSTED = "AllStrategiesExhausted"


class CandidateKind(str, Enum):
    """Tipos de regra do banco de seletores"""

    CSS = "css"
    ATTRIBUTE = "attribute"
    JSON_LD = "json-ld"
    TEXT_SCAN = "text-scan"


class PricePoint(BaseModel):
    """Registro de histórico de preço"""

    price: float = Field(ge=0, description="Preço observado")
    timestamp: datetime = Field(
        default_factory=datetime.now, description="Momento da observação"
    )


class MonitoredProduct(BaseModel):
    """Produto monitorado pelo usuário"""

    id: str = Field(default_factory=lambda: uuid4().hex, description="Identificador")
    user_id: str = Field(default="default", description="Usuário dono do produto")
    name: str = Field(description="Nome de exibição")
    url: str = Field(description="URL do produto na loja")
    target_price: float = Field(gt=0, description="Preço alvo definido pelo usuário")
    current_price: Optional[float] = Field(
        default=None, ge=0, description="Último preço observado"
    )
    store: str = Field(default="", description="Loja derivada do host da URL")
    active: bool = Field(default=True, description="Monitoramento ativo")
    selector: Optional[str] = Field(
        default=None, description="Seletor CSS explícito (None ou 'auto' = automático)"
    )
    added_at: datetime = Field(default_factory=datetime.now)
    last_checked: Optional[datetime] = Field(default=None)
    price_history: List[PricePoint] = Field(default_factory=list)

    @model_validator(mode="after")
    def _fill_store(self):
        if not self.store:
            from ..utils.site_detection import detect_store

            self.store = detect_store(self.url)
        return self

    @property
    def uses_auto_detection(self) -> bool:
        return not self.selector or self.selector.strip().lower() == "auto"

    def record_price(self, price: float, when: Optional[datetime] = None):
        """Atualiza o preço atual e o histórico (últimos 50 registros)"""
        when = when or datetime.now()
        self.current_price = price
        self.last_checked = when
        self.price_history.append(PricePoint(price=price, timestamp=when))
        self.price_history = self.price_history[-MAX_PRICE_HISTORY:]


class SelectorCandidate(BaseModel):
    """Regra heurística para localizar o elemento de preço"""

    rank: int = Field(ge=0, description="Prioridade (menor = avaliado antes)")
    pattern: str = Field(description="Seletor CSS ou escopo do escaneamento")
    kind: CandidateKind = Field(default=CandidateKind.CSS)
    site_family: Optional[str] = Field(default=None, description="Família de site")
    label: str = Field(default="", description="Descrição legível")
    attribute: Optional[str] = Field(
        default=None, description="Atributo lido em regras do tipo attribute"
    )
    numeric_value: bool = Field(
        default=False, description="O atributo contém número legível por máquina"
    )


class FetcherConfig(BaseModel):
    """Configuração de uma estratégia de obtenção de HTML"""

    name: str
    headers: Optional[dict] = None
    timeout: float = Field(default=30.0, gt=0, description="Timeout em segundos")
    settle_delay: float = Field(
        default=2.0, ge=0, description="Espera extra após o carregamento"
    )
    headless: bool = True
    browser_type: str = "chromium"


class FetchResult(BaseModel):
    """Resultado de uma estratégia (ou da cadeia) de obtenção de HTML"""

    success: bool
    html: Optional[str] = None
    strategy: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[ErrorKind] = None
    detail: Optional[str] = None
    attempts: List[Dict[str, str]] = Field(default_factory=list)

    @classmethod
    def ok(cls, html: str, strategy: str, status_code: Optional[int] = None):
        return cls(success=True, html=html, strategy=strategy, status_code=status_code)

    @classmethod
    def failure(
        cls,
        error: ErrorKind,
        detail: str,
        strategy: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        return cls(
            success=False,
            error=error,
            detail=detail,
            strategy=strategy,
            status_code=status_code,
        )


class ScrapeResult(BaseModel):
    """Resultado público da extração de preço"""

    success: bool
    price: Optional[float] = None
    selector: Optional[str] = None
    strategy: Optional[str] = Field(
        default=None, description="Estratégia de fetch que produziu o HTML"
    )
    candidate_kind: Optional[CandidateKind] = None
    error: Optional[str] = Field(default=None, description="Valor de ErrorKind")
    detail: Optional[str] = Field(default=None, description="Motivo legível")


class ScrapeAttempt(BaseModel):
    """Tentativa de extração (efêmera, registrada apenas em log)"""

    url: str
    strategy: Optional[str] = None
    html_length: int = 0
    selector: Optional[str] = None
    candidate_kind: Optional[CandidateKind] = None
    raw_text: Optional[str] = None
    price: Optional[float] = None
    success: bool = False
    error: Optional[ErrorKind] = None
    detail: Optional[str] = None

    @model_validator(mode="after")
    def _check_outcome(self):
        if self.success and (self.price is None or self.price < 0):
            raise ValueError("tentativa bem-sucedida exige preço não negativo")
        if not self.success and self.error is None:
            raise ValueError("tentativa com falha exige motivo do erro")
        return self

    def to_result(self) -> ScrapeResult:
        return ScrapeResult(
            success=self.success,
            price=self.price,
            selector=self.selector,
            strategy=self.strategy,
            candidate_kind=self.candidate_kind,
            error=self.error.value if self.error else None,
            detail=self.detail,
        )


class NotificationEvent(BaseModel):
    """Evento de queda de preço para o despachante de notificações"""

    product_id: str
    old_price: Optional[float] = Field(default=None, description="Preço anterior")
    new_price: float = Field(ge=0, description="Preço atual")
    target_price: float = Field(gt=0, description="Preço alvo")
    discount_percentage: float = Field(default=0.0)
    timestamp: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def _check_target(self):
        if self.new_price > self.target_price:
            raise ValueError("notificação só é emitida com preço <= alvo")
        return self

    @classmethod
    def from_prices(cls, product_id: str, old_price, new_price, target_price):
        """Cria o evento calculando o desconto em relação ao preço anterior"""
        discount = 0.0
        if old_price and old_price > 0 and new_price < old_price:
            discount = ((old_price - new_price) / old_price) * 100
        return cls(
            product_id=product_id,
            old_price=old_price,
            new_price=new_price,
            target_price=target_price,
            discount_percentage=round(discount, 2),
        )


class MonitoringResult(BaseModel):
    """Resultado de um ciclo de monitoramento"""

    products: List[MonitoredProduct] = Field(
        default_factory=list, description="Produtos verificados com sucesso"
    )
    events: List[NotificationEvent] = Field(
        default_factory=list, description="Notificações geradas"
    )
    errors: List[str] = Field(default_factory=list, description="Erros por produto")
    total_checked: int = Field(default=0, description="Total de produtos verificados")
    execution_time: float = Field(default=0.0, description="Tempo em segundos")
    checked_at: datetime = Field(default_factory=datetime.now)

    def add_product(self, product: MonitoredProduct):
        """Adiciona um produto verificado ao resultado"""
        self.products.append(product)
        self.total_checked = len(self.products)

    def add_event(self, event: NotificationEvent):
        self.events.append(event)

    def add_error(self, error: str):
        """Adiciona um erro ao resultado"""
        self.errors.append(error)


class ScraperSettings(BaseModel):
    """Configuração explícita do pipeline, criada no início do processo"""

    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )
    headless_timeout: float = Field(default=30.0, gt=0)
    http_timeout: float = Field(default=15.0, gt=0)
    settle_delay: float = Field(default=2.0, ge=0)
    fetch_strategies: List[str] = Field(
        default_factory=lambda: ["selenium", "playwright", "http"]
    )
    playwright_browser: str = "chromium"

    @field_validator("fetch_strategies")
    @classmethod
    def _strategies_not_empty(cls, value):
        if not value:
            raise ValueError("ao menos uma estratégia de fetch é necessária")
        return value

    @classmethod
    def from_config(cls, config) -> "ScraperSettings":
        """Constrói a partir de um ConfigManager"""
        strategies = config.get_list("FETCH_STRATEGIES", "selenium,playwright,http")
        return cls(
            user_agent=config.get("USER_AGENT", cls.model_fields["user_agent"].default),
            headless_timeout=config.get_float("HEADLESS_TIMEOUT", 30.0),
            http_timeout=config.get_float("HTTP_TIMEOUT", 15.0),
            settle_delay=config.get_float("SETTLE_DELAY", 2.0),
            fetch_strategies=strategies,
            playwright_browser=config.get("PLAYWRIGHT_BROWSER", "chromium"),
        )

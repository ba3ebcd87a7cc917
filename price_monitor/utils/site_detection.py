from typing import List, Tuple
from urllib.parse import urlparse


# Padrões de host -> nome de exibição da loja (primeiro que casar vence)
SITE_LABELS: List[Tuple[str, str]] = [
    ("amazon.com.br", "Amazon BR"),
    ("amazon.", "Amazon"),
    ("mercadolivre.com.br", "Mercado Livre"),
    ("mercadolibre.", "Mercado Livre"),
    ("magazineluiza.com.br", "Magazine Luiza"),
    ("magalu.", "Magazine Luiza"),
    ("americanas.com.br", "Americanas"),
    ("submarino.com.br", "Submarino"),
    ("shoptime.com.br", "Shoptime"),
    ("casasbahia.com.br", "Casas Bahia"),
    ("pontofrio.com.br", "Ponto Frio"),
    ("pontofrio.com", "Ponto Frio"),
    ("extra.com.br", "Extra"),
    ("carrefour.com.br", "Carrefour"),
    ("kabum.com.br", "KaBuM!"),
    ("netshoes.com.br", "Netshoes"),
    ("centauro.com.br", "Centauro"),
    ("samsung.com", "Samsung"),
    ("lg.com", "LG"),
    ("shopee.com.br", "Shopee"),
    ("aliexpress.", "AliExpress"),
]


def extract_domain(url: str) -> str:
    """Extrai o domínio da URL sem o prefixo www."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return "unknown"
    if not hostname:
        return "unknown"
    hostname = hostname.lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


def detect_store(url: str) -> str:
    """Retorna o nome da loja a partir do host da URL"""
    domain = extract_domain(url)
    for pattern, label in SITE_LABELS:
        if pattern in domain:
            return label
    return domain

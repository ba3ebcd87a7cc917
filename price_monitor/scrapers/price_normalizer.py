"""
Normalização de preços no formato brasileiro.

Converte fragmentos como ``"R$ 1.234,56"`` ou ``"por R$ 99,90 à vista"`` em
um float comparável (``1234.56``, ``99.9``). Qualquer texto sem um padrão
monetário reconhecível (códigos de produto, quantidades, "grátis") é
rejeitado com ``None``.
"""

import re
from typing import Optional, List

# Teto de sanidade: valores acima disso quase sempre são códigos ou IDs
MAX_PRICE = 1_000_000

# Forma canônica já normalizada ("99.90", "5.0")
CANONICAL_PATTERN = re.compile(r"^(\d+\.\d{1,2})$")

# R$ 1.234,56 | R$ 99,90 | R$1.200
CURRENCY_PATTERN = re.compile(
    r"(?P<sign>-\s*)?R\$\s*(?P<int>\d{1,3}(?:\.\d{3})+|\d+)(?:,(?P<dec>\d{2}))?(?![\d,.]?\d)"
)

# 1.234,56 | 99,90 (sem símbolo, exige vírgula e dois decimais)
BARE_PATTERN = re.compile(
    r"(?<![\d.,])(?P<sign>-\s*)?(?P<int>\d{1,3}(?:\.\d{3})+|\d+),(?P<dec>\d{2})(?![\d,.]?\d)"
)

# Marcador do preço atual em textos "de R$ X por R$ Y"
CURRENT_PRICE_MARKER = re.compile(r"\bpor\b[:\s\w]{0,15}$", re.IGNORECASE)


def _clean_text(text: str) -> str:
    return " ".join(text.replace("\xa0", " ").split())


def _to_float(match: re.Match) -> Optional[float]:
    if match.group("sign"):
        return None

    integer_part = match.group("int").replace(".", "")
    decimal_part = match.group("dec") or "00"

    try:
        value = float(f"{integer_part}.{decimal_part}")
    except ValueError:
        return None

    if value <= 0 or value >= MAX_PRICE:
        return None
    return value


def _pick_match(text: str, matches: List[re.Match]) -> re.Match:
    """Escolhe o valor introduzido por "por" quando houver mais de um"""
    if len(matches) > 1:
        previous_end = 0
        for match in matches:
            # "por", "Por:", "por apenas" entre o valor anterior e este
            if CURRENT_PRICE_MARKER.search(text[previous_end : match.start()]):
                return match
            previous_end = match.end()
    return matches[0]


def normalize_price(text: Optional[str]) -> Optional[float]:
    """
    Converte texto de preço brasileiro em float.

    Args:
        text: Fragmento de texto possivelmente contendo um preço

    Returns:
        Valor positivo em reais, ou None se nenhum preço válido for encontrado
    """
    if not text or not isinstance(text, str):
        return None

    cleaned = _clean_text(text)
    if not any(char.isdigit() for char in cleaned):
        return None

    canonical = CANONICAL_PATTERN.match(cleaned)
    if canonical:
        value = float(canonical.group(1))
        return value if 0 < value < MAX_PRICE else None

    for pattern in (CURRENCY_PATTERN, BARE_PATTERN):
        matches = list(pattern.finditer(cleaned))
        if matches:
            return _to_float(_pick_match(cleaned, matches))

    return None


def format_brl(value: float) -> str:
    """Formata um valor no padrão R$ 1.234,56"""
    formatted = f"{value:,.2f}"
    return "R$ " + formatted.replace(",", "_").replace(".", ",").replace("_", ".")

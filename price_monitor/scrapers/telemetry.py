from collections import Counter, defaultdict, deque
from datetime import datetime, timedelta
from typing import Any, Deque, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, Field


MAX_ATTEMPTS_PER_DOMAIN = 50
TOP_SELECTORS = 5


class SelectorAttemptLog(BaseModel):
    """Registro de uma tentativa de seletor em um domínio"""

    selector: str
    success: bool
    price: Optional[float] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class SelectorTelemetry:
    """
    Histórico em memória das tentativas de seletor por domínio.

    Serve apenas para diagnóstico: a ordem do banco de seletores nunca é
    alterada com base nestes dados.
    """

    def __init__(self, max_per_domain: int = MAX_ATTEMPTS_PER_DOMAIN):
        self.max_per_domain = max_per_domain
        self._attempts: Dict[str, Deque[SelectorAttemptLog]] = defaultdict(
            lambda: deque(maxlen=self.max_per_domain)
        )

    def record(
        self,
        domain: str,
        selector: Optional[str],
        success: bool,
        price: Optional[float] = None,
        when: Optional[datetime] = None,
    ):
        entry = SelectorAttemptLog(
            selector=selector or "-",
            success=success,
            price=price,
            timestamp=when or datetime.now(),
        )
        self._attempts[domain].append(entry)
        logger.debug(
            f"📊 [{domain}] Seletor: {entry.selector} | Sucesso: {success} | "
            f"Preço: {price if price is not None else 'N/A'}"
        )

    def attempts(self, domain: str) -> List[SelectorAttemptLog]:
        return list(self._attempts.get(domain, []))

    def domains(self) -> List[str]:
        return sorted(self._attempts)

    def stats(self, domain: str) -> Dict[str, Any]:
        """Total de tentativas, taxa de sucesso (%) e melhores seletores"""
        attempts = self.attempts(domain)
        total = len(attempts)
        successful = [a for a in attempts if a.success]
        success_rate = (len(successful) / total) * 100 if total else 0.0

        counts = Counter(a.selector for a in successful)
        best = [selector for selector, _ in counts.most_common(TOP_SELECTORS)]

        return {
            "total_attempts": total,
            "success_rate": round(success_rate, 2),
            "best_selectors": best,
        }

    def export(self) -> Dict[str, Any]:
        """Exporta estatísticas e tentativas de todos os domínios"""
        data = {}
        for domain in self.domains():
            data[domain] = {
                "stats": self.stats(domain),
                "attempts": [
                    {
                        "selector": a.selector,
                        "success": a.success,
                        "price": a.price,
                        "timestamp": a.timestamp.isoformat(),
                    }
                    for a in self._attempts[domain]
                ],
            }
        return data

    def clear_old(self, days: int = 7) -> int:
        """Remove tentativas mais antigas que ``days``; retorna quantas saíram"""
        cutoff = datetime.now() - timedelta(days=days)
        removed = 0

        for domain in list(self._attempts):
            current = self._attempts[domain]
            kept = [a for a in current if a.timestamp > cutoff]
            if len(kept) != len(current):
                removed += len(current) - len(kept)
                logger.info(
                    f"🧹 Removidos {len(current) - len(kept)} registros antigos para {domain}"
                )
                current.clear()
                current.extend(kept)

        return removed

import asyncio
from typing import Optional

from loguru import logger

from .monitoring_orchestrator import MonitoringOrchestrator
from ..models import MonitoringResult
from ..utils.data_storage import DataStorage, ProductStore


class PriceMonitorScheduler:
    """Executa ciclos de monitoramento em intervalo fixo"""

    def __init__(
        self,
        orchestrator: MonitoringOrchestrator,
        store: ProductStore,
        interval_minutes: float = 60,
        data_storage: Optional[DataStorage] = None,
    ):
        if interval_minutes <= 0:
            raise ValueError("O intervalo deve ser positivo")
        self.orchestrator = orchestrator
        self.store = store
        self.interval_minutes = interval_minutes
        self.data_storage = data_storage
        self.cycles_run = 0
        self.last_result: Optional[MonitoringResult] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_cycle(self) -> Optional[MonitoringResult]:
        """Executa uma verificação imediata de todos os produtos ativos"""
        if not self.store.list_products(active_only=True):
            logger.info("Nenhum produto para monitorar")
            return None

        result = await self.orchestrator.run_monitoring()
        self.cycles_run += 1
        self.last_result = result

        if self.data_storage is not None:
            filepath = self.data_storage.save_monitoring_result(result)
            logger.debug(f"Resultado salvo em: {filepath}")

        return result

    async def start(self, max_cycles: Optional[int] = None):
        """
        Executa um ciclo imediatamente e repete a cada intervalo.

        Args:
            max_cycles: Encerra após este número de ciclos (None = até stop())
        """
        if self._running:
            logger.warning("Scheduler já está rodando")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        logger.info(
            f"Scheduler iniciado - verificando preços a cada {self.interval_minutes} minutos"
        )

        completed = 0
        try:
            while not self._stop_event.is_set():
                try:
                    await self.run_cycle()
                except Exception as e:
                    logger.error(f"Erro no ciclo de monitoramento: {str(e)}")

                completed += 1
                if max_cycles is not None and completed >= max_cycles:
                    break

                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self.interval_minutes * 60
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            logger.info("Scheduler parado")

    def stop(self):
        """Encerra o loop após o ciclo em andamento"""
        if self._stop_event is not None:
            self._stop_event.set()

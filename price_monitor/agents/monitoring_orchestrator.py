import asyncio
import time
from typing import Dict, List, Optional, TypedDict

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langgraph.graph import END, StateGraph
from loguru import logger

from ..models import MonitoredProduct, MonitoringResult, NotificationEvent
from ..scrapers import PriceScraper
from ..utils.data_storage import ProductStore
from ..utils.telegram_notifier import TelegramNotifier


class MonitoringState(TypedDict):
    """Estado compartilhado entre os agentes do ciclo de monitoramento"""

    user_id: Optional[str]
    pending: List[MonitoredProduct]
    position: int
    checked: List[MonitoredProduct]
    events: List[NotificationEvent]
    errors: List[str]
    notified: int
    messages: List[BaseMessage]


class MonitoringOrchestrator:
    """Orquestrador do ciclo de verificação de preços"""

    def __init__(
        self,
        scraper: PriceScraper,
        store: ProductStore,
        notifier: Optional[TelegramNotifier] = None,
    ):
        self.scraper = scraper
        self.store = store
        self.notifier = notifier
        self.graph = self._build_graph()

    def _build_graph(self):
        """Constrói o grafo de agentes LangGraph"""

        workflow = StateGraph(MonitoringState)

        workflow.add_node("coordinator", self._coordinator_agent)
        workflow.add_node("price_checker", self._price_checker_agent)
        workflow.add_node("notifier", self._notifier_agent)
        workflow.add_node("results_aggregator", self._results_aggregator_agent)

        workflow.set_entry_point("coordinator")

        workflow.add_conditional_edges(
            "coordinator",
            self._has_pending_products,
            {"check": "price_checker", "done": "results_aggregator"},
        )

        # Um produto por passo, em sequência
        workflow.add_conditional_edges(
            "price_checker",
            self._has_pending_products,
            {"check": "price_checker", "done": "notifier"},
        )

        workflow.add_edge("notifier", "results_aggregator")
        workflow.add_edge("results_aggregator", END)

        return workflow.compile()

    async def _coordinator_agent(self, state: MonitoringState) -> MonitoringState:
        """Seleciona os produtos ativos a verificar"""
        logger.info("Agente Coordenador: Selecionando produtos ativos")

        if not state["pending"]:
            products = self.store.list_products(active_only=True)
            if state["user_id"]:
                products = [p for p in products if p.user_id == state["user_id"]]
            state["pending"] = products

        message = HumanMessage(
            content=f"Iniciando verificação de {len(state['pending'])} produto(s)"
        )
        state["messages"].append(message)

        logger.info(f"Produtos para verificar: {len(state['pending'])}")
        return state

    async def check_product(self, product: MonitoredProduct) -> Optional[NotificationEvent]:
        """
        Verifica o preço de um produto e persiste a atualização.

        Returns:
            NotificationEvent quando o preço atual atinge o alvo

        Raises:
            RuntimeError: quando o preço não pôde ser extraído
        """
        if product.uses_auto_detection:
            result = await self.scraper.scrape_price_auto(product.url)
        else:
            result = await self.scraper.scrape_price(product.url, product.selector)

        if not result.success:
            raise RuntimeError(f"{result.error}: {result.detail}")

        old_price = product.current_price
        product.record_price(result.price)
        self.store.update_product(product)

        if result.price <= product.target_price:
            return NotificationEvent.from_prices(
                product.id, old_price, result.price, product.target_price
            )
        return None

    async def _price_checker_agent(self, state: MonitoringState) -> MonitoringState:
        """Agente que verifica o próximo produto da fila"""
        product = state["pending"][state["position"]]
        state["position"] += 1
        logger.info(f"Agente Verificador: {product.name} ({product.store})")

        try:
            event = await self.check_product(product)
            state["checked"].append(product)

            if event:
                state["events"].append(event)
                content = (
                    f"{product.name}: R$ {product.current_price:.2f} "
                    f"(alvo R$ {product.target_price:.2f}) - alerta gerado"
                )
            else:
                content = f"{product.name}: R$ {product.current_price:.2f}"
            state["messages"].append(AIMessage(content=content))

        except Exception as e:
            error_msg = f"Erro ao verificar {product.name}: {str(e)}"
            state["errors"].append(error_msg)
            logger.error(error_msg)

        return state

    async def _notifier_agent(self, state: MonitoringState) -> MonitoringState:
        """Agente que despacha os alertas de preço"""
        if not state["events"]:
            return state

        if self.notifier is None or not self.notifier.is_configured:
            logger.info(f"{len(state['events'])} alerta(s) gerado(s), notificador não configurado")
            return state

        logger.info(f"Agente Notificador: enviando {len(state['events'])} alerta(s)")
        products: Dict[str, MonitoredProduct] = {p.id: p for p in state["checked"]}
        loop = asyncio.get_running_loop()

        for event in state["events"]:
            product = products[event.product_id]
            try:
                sent = await loop.run_in_executor(
                    None, self.notifier.send_price_alert, event, product
                )
            except Exception as e:
                sent = False
                logger.error(f"Erro inesperado no envio do alerta: {str(e)}")

            if sent:
                state["notified"] += 1
            else:
                state["errors"].append(f"Falha ao enviar alerta para {product.name}")

        return state

    async def _results_aggregator_agent(self, state: MonitoringState) -> MonitoringState:
        """Agente agregador que consolida os resultados"""
        total_checked = len(state["checked"])
        total_errors = len(state["errors"])

        summary_message = AIMessage(
            content=(
                f"Ciclo concluído: {total_checked} produto(s) verificados, "
                f"{len(state['events'])} alerta(s), {total_errors} erro(s)."
            )
        )
        state["messages"].append(summary_message)

        logger.success(f"Agregação concluída: {total_checked} produtos verificados")
        return state

    def _has_pending_products(self, state: MonitoringState) -> str:
        if state["position"] < len(state["pending"]):
            return "check"
        return "done"

    async def run_monitoring(
        self,
        products: Optional[List[MonitoredProduct]] = None,
        user_id: Optional[str] = None,
    ) -> MonitoringResult:
        """Executa um ciclo completo de monitoramento usando LangGraph"""
        logger.info("Iniciando ciclo de monitoramento")
        start_time = time.time()

        initial_state: MonitoringState = {
            "user_id": user_id,
            "pending": list(products or []),
            "position": 0,
            "checked": [],
            "events": [],
            "errors": [],
            "notified": 0,
            "messages": [],
        }

        # Cada produto é um passo do grafo
        pending_count = (
            len(initial_state["pending"])
            if products
            else len(self.store.list_products(active_only=True))
        )
        config = {"recursion_limit": pending_count * 2 + 10}

        try:
            final_state = await self.graph.ainvoke(initial_state, config=config)
        except Exception as e:
            logger.error(f"Erro na orquestração: {str(e)}")
            return MonitoringResult(
                errors=[f"Erro na orquestração: {str(e)}"],
                execution_time=time.time() - start_time,
            )

        result = MonitoringResult(
            events=final_state["events"],
            errors=final_state["errors"],
        )
        for product in final_state["checked"]:
            result.add_product(product)
        result.execution_time = time.time() - start_time

        logger.success(
            f"Monitoramento concluído em {result.execution_time:.2f}s: "
            f"{result.total_checked} verificados, {len(result.events)} alerta(s), "
            f"{final_state['notified']} enviado(s)"
        )
        return result

#!/usr/bin/env python3
"""
Monitor de Preços
=================

Monitora páginas de produtos de e-commerces brasileiros e avisa pelo
Telegram quando o preço atinge o valor alvo definido pelo usuário.

O preço é extraído automaticamente (seletores específicos por loja,
metadados JSON-LD, heurísticas genéricas e busca textual) ou por um
seletor CSS informado no cadastro do produto.

Uso:
    price-monitor scrape "https://www.amazon.com.br/dp/B0CHX1W1XY"
    price-monitor add "iPhone 15" "https://www.amazon.com.br/dp/B0CHX1W1XY" 4500
    price-monitor list
    price-monitor check --save
    price-monitor watch --interval 30
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List

from pydantic import ValidationError

from .agents import MonitoringOrchestrator, PriceMonitorScheduler
from .models import MonitoredProduct, MonitoringResult, ScrapeResult, ScraperSettings
from .scrapers import PriceScraper, SelectorTelemetry, format_brl
from .utils import ConfigManager, DataStorage, Logger, ProductStore, TelegramNotifier


def setup_environment() -> ConfigManager:
    """Configura o ambiente da aplicação"""
    # Carrega configurações
    config = ConfigManager()

    # Configura logging
    log_level = "DEBUG" if config.get_bool("DEBUG") else "INFO"
    log_dir = Path(config.get("DATA_DIR", "data")) / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    Logger.setup_logging(
        level=log_level,
        log_file=str(log_dir / "monitor.log"),
        retention_days=config.get_int("RESULTS_RETENTION_DAYS", 30),
    )

    return config


def build_scraper(config: ConfigManager, telemetry: SelectorTelemetry = None) -> PriceScraper:
    settings = ScraperSettings.from_config(config)
    return PriceScraper(settings=settings, telemetry=telemetry)


def build_store(config: ConfigManager) -> ProductStore:
    return ProductStore(str(Path(config.get("DATA_DIR", "data")) / "products.json"))


def build_orchestrator(
    config: ConfigManager, telemetry: SelectorTelemetry = None
) -> MonitoringOrchestrator:
    notifier = TelegramNotifier(
        config.get("TELEGRAM_BOT_TOKEN"), config.get("TELEGRAM_CHAT_ID")
    )
    return MonitoringOrchestrator(
        scraper=build_scraper(config, telemetry),
        store=build_store(config),
        notifier=notifier,
    )


def print_scrape_result(url: str, result: ScrapeResult):
    """Exibe o resultado de uma extração"""
    print("\n" + "=" * 80)
    print("RESULTADO DA EXTRAÇÃO")
    print("=" * 80)
    print(f"🔗 URL: {url}")

    if result.success:
        print(f"💰 Preço: {format_brl(result.price)}")
        print(f"🎯 Seletor: {result.selector}")
        if result.candidate_kind:
            print(f"🧩 Tipo de regra: {result.candidate_kind.value}")
        print(f"🌐 Estratégia: {result.strategy}")
    else:
        print(f"❌ Erro: {result.error}")
        if result.detail:
            print(f"   • {result.detail}")

    print("=" * 80)


def print_products(products: List[MonitoredProduct]):
    """Lista os produtos monitorados"""
    if not products:
        print("\n📭 Nenhum produto cadastrado.")
        return

    print(f"\n📦 PRODUTOS MONITORADOS ({len(products)})")
    print("-" * 80)

    for i, product in enumerate(products, 1):
        status = "✅ ativo" if product.active else "⏸️  inativo"
        print(f"\n{i}. {product.name} [{status}]")
        print(f"   🆔 ID: {product.id}")
        print(f"   🏪 Loja: {product.store}")
        print(f"   🎯 Preço alvo: {format_brl(product.target_price)}")
        if product.current_price is not None:
            print(f"   💰 Preço atual: {format_brl(product.current_price)}")
        print(f"   🧩 Seletor: {product.selector or 'auto'}")
        if product.last_checked:
            print(
                f"   📅 Última verificação: {product.last_checked.strftime('%d/%m/%Y %H:%M:%S')}"
            )
        print(f"   🔗 URL: {product.url}")


def print_monitoring_result(result: MonitoringResult):
    """Exibe o resumo de um ciclo de monitoramento"""
    print("\n" + "=" * 80)
    print(f"CICLO DE MONITORAMENTO - {result.checked_at.strftime('%d/%m/%Y %H:%M:%S')}")
    print("=" * 80)

    print(f"📊 Resumo:")
    print(f"   • Produtos verificados: {result.total_checked}")
    print(f"   • Alertas gerados: {len(result.events)}")
    print(f"   • Tempo de execução: {result.execution_time:.2f}s")
    print(f"   • Erros: {len(result.errors)}")

    if result.errors:
        print(f"\n❌ Erros encontrados:")
        for error in result.errors:
            print(f"   • {error}")

    if result.products:
        print(f"\n🛍️ Preços atuais:")
        print("-" * 80)
        for product in result.products:
            marker = "🔥" if product.current_price <= product.target_price else "  "
            print(
                f"{marker} {product.name}: {format_brl(product.current_price)} "
                f"(alvo {format_brl(product.target_price)})"
            )

    if result.events:
        print(f"\n🚨 Alertas:")
        for event in result.events:
            discount = (
                f" | 📉 {event.discount_percentage:.1f}%" if event.discount_percentage else ""
            )
            print(f"   • {event.product_id}: {format_brl(event.new_price)}{discount}")

    print("\n" + "=" * 80)


def print_telemetry(telemetry: SelectorTelemetry):
    data = telemetry.export()
    if not data:
        return
    print(f"\n📈 Estatísticas de seletores:")
    for domain, entry in data.items():
        stats = entry["stats"]
        print(
            f"   • {domain}: {stats['total_attempts']} tentativa(s), "
            f"{stats['success_rate']:.1f}% sucesso"
        )
        for selector in stats["best_selectors"]:
            print(f"       - {selector}")


async def cmd_scrape(args, config: ConfigManager) -> int:
    telemetry = SelectorTelemetry() if args.telemetry else None
    scraper = build_scraper(config, telemetry)

    print(f"🔍 Extraindo preço de: {args.url}")
    print("⏳ Iniciando extração...\n")

    if args.selector:
        result = await scraper.scrape_price(args.url, args.selector)
    else:
        result = await scraper.scrape_price_auto(args.url)

    print_scrape_result(args.url, result)
    if telemetry:
        print_telemetry(telemetry)

    return 0 if result.success else 1


async def cmd_add(args, config: ConfigManager) -> int:
    store = build_store(config)
    try:
        product = MonitoredProduct(
            name=args.name,
            url=args.url,
            target_price=args.target,
            selector=args.selector,
            user_id=args.user,
        )
    except ValidationError as e:
        print(f"❌ Dados inválidos: {e.errors()[0]['msg']}")
        return 1

    store.add_product(product)
    print(f"✅ Produto cadastrado: {product.name} ({product.store})")
    print(f"   🆔 ID: {product.id}")
    return 0


async def cmd_list(args, config: ConfigManager) -> int:
    store = build_store(config)
    print_products(store.list_products(active_only=not args.all))
    return 0


async def cmd_remove(args, config: ConfigManager) -> int:
    store = build_store(config)
    if args.hard:
        removed = store.delete_product(args.id)
    else:
        removed = store.deactivate_product(args.id)

    if not removed:
        print(f"❌ Produto não encontrado: {args.id}")
        return 1

    print(f"🗑️  Produto {'removido' if args.hard else 'desativado'}: {args.id}")
    return 0


async def cmd_check(args, config: ConfigManager) -> int:
    telemetry = SelectorTelemetry() if args.telemetry else None
    orchestrator = build_orchestrator(config, telemetry)

    print("⏳ Verificando preços...\n")
    result = await orchestrator.run_monitoring()
    print_monitoring_result(result)
    if telemetry:
        print_telemetry(telemetry)

    if args.save:
        storage = DataStorage(config.get("DATA_DIR", "data"))
        json_file = storage.save_monitoring_result(result)
        print(f"💾 Resultados salvos em: {json_file}")

        if result.products:
            csv_file = storage.save_products_csv(result.products)
            print(f"📊 CSV salvo em: {csv_file}")

        removed = storage.cleanup_old_results(config.get_int("RESULTS_RETENTION_DAYS", 30))
        if removed:
            print(f"🧹 {removed} resultado(s) antigo(s) removido(s)")

    return 0 if not result.errors else 1


async def cmd_watch(args, config: ConfigManager) -> int:
    orchestrator = build_orchestrator(config)
    interval = args.interval or config.get_float("CHECK_INTERVAL_MINUTES", 60)
    scheduler = PriceMonitorScheduler(
        orchestrator,
        orchestrator.store,
        interval_minutes=interval,
        data_storage=DataStorage(config.get("DATA_DIR", "data")),
    )

    print(f"⏰ Monitorando a cada {interval:g} minuto(s). Ctrl+C para encerrar.")
    await scheduler.start(max_cycles=args.cycles)

    if scheduler.last_result:
        print_monitoring_result(scheduler.last_result)
    return 0


COMMANDS = {
    "scrape": cmd_scrape,
    "add": cmd_add,
    "list": cmd_list,
    "remove": cmd_remove,
    "check": cmd_check,
    "watch": cmd_watch,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="price-monitor",
        description="Monitor de preços de e-commerces brasileiros",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exemplos de uso:
  price-monitor scrape "https://www.magazineluiza.com.br/produto/p/123/"
  price-monitor scrape "https://loja.com.br/produto" --selector ".preco-final"
  price-monitor add "Smart TV 55" "https://www.amazon.com.br/dp/B0XXXX" 2999.90
  price-monitor check --save
  price-monitor watch --interval 30 --cycles 4
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scrape = subparsers.add_parser("scrape", help="Extrai o preço atual de uma URL")
    scrape.add_argument("url", help="URL da página do produto")
    scrape.add_argument("--selector", help="Seletor CSS explícito (padrão: automático)")
    scrape.add_argument(
        "--telemetry", action="store_true", help="Exibir estatísticas de seletores"
    )

    add = subparsers.add_parser("add", help="Cadastra um produto para monitorar")
    add.add_argument("name", help="Nome de exibição")
    add.add_argument("url", help="URL da página do produto")
    add.add_argument("target", type=float, help="Preço alvo em reais")
    add.add_argument("--selector", help="Seletor CSS explícito (padrão: automático)")
    add.add_argument("--user", default="default", help="Usuário dono do produto")

    list_parser = subparsers.add_parser("list", help="Lista os produtos monitorados")
    list_parser.add_argument(
        "--all", action="store_true", help="Incluir produtos inativos"
    )

    remove = subparsers.add_parser("remove", help="Desativa ou remove um produto")
    remove.add_argument("id", help="ID do produto")
    remove.add_argument("--hard", action="store_true", help="Remover definitivamente")

    check = subparsers.add_parser("check", help="Executa um ciclo de verificação agora")
    check.add_argument("--save", action="store_true", help="Salvar resultados em arquivo")
    check.add_argument(
        "--telemetry", action="store_true", help="Exibir estatísticas de seletores"
    )

    watch = subparsers.add_parser("watch", help="Verifica preços periodicamente")
    watch.add_argument("--interval", type=float, help="Intervalo em minutos")
    watch.add_argument("--cycles", type=int, help="Número máximo de ciclos")

    return parser


async def main(argv=None) -> int:
    """Função principal"""
    args = build_parser().parse_args(argv)

    # Configura ambiente
    config = setup_environment()

    try:
        return await COMMANDS[args.command](args, config)

    except KeyboardInterrupt:
        print("\n⏹️  Monitoramento interrompido pelo usuário")
        return 1
    except (OSError, json.JSONDecodeError, ValueError) as e:
        print(f"\n❌ Erro: {str(e)}")
        return 1


def run():
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\n⏹️  Programa interrompido")
        sys.exit(1)


if __name__ == "__main__":
    run()

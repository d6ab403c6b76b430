"""Primus — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
one-off analyses.
"""

import logging

from fastapi import FastAPI

from primus.api.routers import router

app = FastAPI(title="Primus Analysis API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("primus")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


def build_services(config) -> dict:
    """Wire clients, repos and the orchestrator from *config*.

    Also injects them into the API routers.
    """
    from primus.analysis.ai_analyzer import AIAnalyzer
    from primus.analysis.orchestrator import AnalysisOrchestrator
    from primus.api.routers import configure_routers
    from primus.charts.generator import ChartGenerator
    from primus.conversation.responder import AnalysisExplainer, ChatResponder
    from primus.quotes.twelvedata_client import TwelveDataClient
    from primus.repos.analysis_repo import AnalysisRepo
    from primus.repos.conversation_repo import ConversationRepo
    from primus.repos.db import init_db
    from primus.repos.reference_repo import ReferenceRepo
    from primus.strategy.registry import load_zone_limit_overrides

    init_db(config.db_path)

    quotes = TwelveDataClient(config)
    analyzer = AIAnalyzer(config)
    orchestrator = AnalysisOrchestrator(
        config,
        quotes=quotes,
        analyzer=analyzer,
        charts=ChartGenerator(config.chart_dir, config.chart_bars),
        zone_limit_overrides=load_zone_limit_overrides(config.zone_limits_path),
    )
    analysis_repo = AnalysisRepo(config.db_path)
    reference_repo = ReferenceRepo(config.db_path)
    conversation_repo = ConversationRepo(config.db_path)
    explainer = AnalysisExplainer(analyzer, reference_repo)
    responder = ChatResponder(analyzer, reference_repo, conversation_repo)

    configure_routers(
        config=config,
        orchestrator=orchestrator,
        analyzer=analyzer,
        analysis_repo=analysis_repo,
        reference_repo=reference_repo,
        explainer=explainer,
        responder=responder,
        conversation_repo=conversation_repo,
    )
    return {
        "orchestrator": orchestrator,
        "analyzer": analyzer,
        "analysis_repo": analysis_repo,
        "reference_repo": reference_repo,
        "explainer": explainer,
        "responder": responder,
        "conversation_repo": conversation_repo,
    }


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli(argv: list[str] | None = None) -> int:
    """Parse CLI arguments and dispatch to the requested command."""
    import argparse
    import asyncio

    from primus.config import load_config
    from primus.strategy.registry import available_strategies

    parser = argparse.ArgumentParser(description="Primus multi-timeframe analysis")
    parser.add_argument("--env", help="Path to a .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Run one analysis and print it")
    analyze.add_argument("--pair", required=True, help="Instrument, e.g. EUR/USD")
    analyze.add_argument(
        "--strategy", choices=available_strategies(), default="swing",
        help="Strategy (default: swing)",
    )
    analyze.add_argument("--user", default="cli", help="User id for history")

    chat = sub.add_parser("chat", help="Send one chat message and print the reply")
    chat.add_argument("--message", required=True, help="Message text")
    chat.add_argument("--user", default="cli", help="User id for history")

    serve = sub.add_parser("serve", help="Start the internal API server")
    serve.add_argument("--port", type=int, help="Port (default: API_PORT)")

    args = parser.parse_args(argv)
    config = load_config(args.env)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    services = build_services(config)

    if args.command == "serve":
        asyncio.run(_serve(args.port or config.api_port))
        return 0
    if args.command == "chat":
        print(asyncio.run(services["responder"].respond(args.user, args.message)))
        return 0
    return asyncio.run(_analyze_once(services, config, args.pair, args.strategy, args.user))


async def _serve(port: int) -> None:
    """Run the API server until interrupted."""
    import uvicorn

    uvi_config = uvicorn.Config(app, host="0.0.0.0", port=port, log_level="info")
    server = uvicorn.Server(uvi_config)
    logger.info("Primus API available at http://localhost:%d", port)
    await server.serve()


async def _analyze_once(services: dict, config, pair: str, strategy: str, user_id: str) -> int:
    """Run, print and log a single analysis.  Returns the exit code."""
    from primus.analysis.presentation import build_invalid_explanation, generate_short_summary
    from primus.cli.report import print_analysis
    from primus.errors import AnalysisError

    try:
        analysis = await services["orchestrator"].run_analysis(pair, strategy)
    except AnalysisError as exc:
        logger.error("Analysis failed: %s", exc)
        return 1

    summary = await generate_short_summary(services["analyzer"], analysis.reasoning)
    print_analysis(analysis, summary)
    if not analysis.valid:
        print(build_invalid_explanation(analysis))

    analysis_id = services["analysis_repo"].log_analysis(
        user_id, analysis, market_category=config.market_for(pair),
    )
    services["reference_repo"].save_reference(user_id, analysis_id, analysis.to_dict())
    return 0


if __name__ == "__main__":
    raise SystemExit(_run_cli())

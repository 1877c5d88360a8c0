# node_admin/run_node_admin.py
"""Run node admin for this host: agents, assignment refresh and operator API."""

import argparse
import logging

import uvicorn

from node_admin.api.main import create_app
from node_admin.config import get_settings
from node_admin.container import build_container

logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def run_once(container) -> int:
    """Converge every assigned node once and exit. Returns the number of failed ticks."""
    orchestrator = container.orchestrator
    orchestrator.refresh_assignments()
    outcomes = orchestrator.tick_all()
    for hostname, outcome in outcomes.items():
        logger.info(f"{hostname}: {outcome.value}")
    return sum(1 for outcome in outcomes.values() if outcome.failed)


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Node admin for one container host")
    parser.add_argument("--once", action="store_true", help="converge all nodes once and exit")
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level)
    container = build_container(settings)

    if args.once:
        raise SystemExit(1 if run_once(container) else 0)

    logger.info("=" * 80)
    logger.info("🚀 NODE ADMIN")
    logger.info("=" * 80)
    logger.info(f"Host: {settings.host_hostname}")
    logger.info(f"Node repository: {settings.node_repository_url}")
    logger.info(f"Storage: {settings.storage_root} (archive: {settings.archive_root})")
    logger.info(f"API: http://{settings.api_host}:{settings.api_port}")
    logger.info("=" * 80)

    orchestrator = container.orchestrator
    orchestrator.start()

    # uvicorn owns SIGINT/SIGTERM and returns once it has shut down
    try:
        uvicorn.run(
            create_app(orchestrator, container.recorder),
            host=settings.api_host,
            port=settings.api_port,
            log_level=settings.log_level.lower(),
        )
    finally:
        logger.info("🛑 Shutting down node admin...")
        orchestrator.stop()


if __name__ == "__main__":
    main()

"""
Entrypoint: load .env and config, set up logging, run a flow file.

    python main.py flows/example.yaml
"""

import argparse
import asyncio
import sys

import structlog
from dotenv import load_dotenv

from requester.config import Config, RequesterConfig
from requester.errors import FlowError
from requester.flow import load_flow, run_flow
from requester.logs import setup_logging


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run a chain of HTTP requests sharing one session.")
    parser.add_argument("flow", help="Path to a flow YAML file")
    parser.add_argument("--config", default=None, help="Path to config.yaml (defaults to the packaged one)")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    """Run the flow and return the process exit code."""
    load_dotenv()
    args = parse_args(argv)

    config = Config(args.config)
    setup_logging(config.logging)
    logger = structlog.get_logger(__name__)

    try:
        phases = load_flow(args.flow)
    except FlowError as e:
        logger.error("flow_invalid", flow=args.flow, error=str(e))
        return 2

    settings = RequesterConfig.from_config(config)
    logger.info("flow_started", flow=args.flow, phases=len(phases), user_agent=settings.user_agent)

    result = await run_flow(phases, settings=settings)

    for name, response in result.responses.items():
        if response is None:
            logger.info("response", name=name, status_code=None)
        else:
            logger.info("response", name=name, status_code=response.status_code, url=str(response.url))

    if not result.success:
        logger.error("flow_failed", phase=result.failed_phase, error=str(result.error))
        return 1

    logger.info("flow_completed", flow=args.flow)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

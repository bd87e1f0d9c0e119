"""
Vision bots main entry point - BOOTSTRAP ONLY
This module should contain NO business logic, only orchestration.
"""
import asyncio
import os
import sys
from typing import NoReturn

import uvicorn

from visionbot.cli import parse_arguments, show_version_info, validate_configuration_only
from visionbot.config import load_config, validate_required_env
from visionbot.exceptions import ConfigurationError
from visionbot.utils.logging import init_logging, get_logger, shutdown_logging_and_exit
from visionbot.web import create_app


async def main() -> NoReturn:
    """Main execution function with CLI support."""
    args = parse_arguments()

    # LOG_LEVEL is read by init_logging, so apply --debug first
    if args.debug:
        os.environ['LOG_LEVEL'] = 'DEBUG'

    init_logging()
    logger = get_logger(__name__)

    if args.version:
        show_version_info()
        shutdown_logging_and_exit(0)

    if args.config_check:
        validate_configuration_only()
        shutdown_logging_and_exit(0)

    try:
        validate_required_env()
        config = load_config()
        app = create_app(config)
    except ConfigurationError as e:
        logger.critical(f"Configuration error during startup: {e}", extra={'subsys': 'core', 'event': 'startup_fail'})
        shutdown_logging_and_exit(1)

    server = uvicorn.Server(
        uvicorn.Config(app, host=config["HOST"], port=config["PORT"], log_config=None)
    )
    logger.info(f"Listening on {config['HOST']}:{config['PORT']}", extra={'subsys': 'core', 'event': 'startup'})
    await server.serve()

    logger.info("Server stopped.")
    shutdown_logging_and_exit(0)


def run() -> None:
    """Entry point for running the bots with proper error handling."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown requested by user.")
        shutdown_logging_and_exit(0)
    except Exception as e:
        print(f"FATAL ERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        shutdown_logging_and_exit(1)


if __name__ == "__main__":
    run()

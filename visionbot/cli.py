"""
Handles command-line interface parsing and actions.
"""
import argparse
import sys

from visionbot import __version__
from visionbot.config import SECRET_VARS, load_config, validate_required_env
from visionbot.exceptions import ConfigurationError
from visionbot.utils.logging import get_logger


def parse_arguments(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Caption and OCR vision bots")
    parser.add_argument('--debug', action='store_true', help='Enable debug logging.')
    parser.add_argument('--config-check', action='store_true', help='Validate configuration and exit.')
    parser.add_argument('--version', action='store_true', help='Show version info and exit.')
    return parser.parse_args(argv)


def show_version_info():
    """Display version and system information."""
    print(f"Vision Bots - Version {__version__}")
    print(f"Python Version: {sys.version}")


def validate_configuration_only():
    """Validate configuration and exit."""
    logger = get_logger(__name__)
    try:
        logger.info("--- Running Configuration-Only Validation ---", extra={'subsys': 'core', 'event': 'config_check_start'})
        validate_required_env()
        config = load_config()
        logger.info("Configuration validation successful. The following settings are active:", extra={'subsys': 'core', 'event': 'config_valid_start'})

        for key, value in config.items():
            if key in SECRET_VARS and value:
                value = '********'
            logger.info(f"  • {key}: {value}", extra={'subsys': 'core', 'event': 'config_valid'})

    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}", extra={'subsys': 'core', 'event': 'config_fail'})
        sys.exit(1)

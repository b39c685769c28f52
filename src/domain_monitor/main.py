"""
CLI entry point for the domain expiry monitor.

Every option can also be given as an environment variable; a ``.env`` file in
the working directory is loaded first.
"""

import asyncio
import logging
import sys
from typing import Optional

import click
from dotenv import load_dotenv

from . import __version__
from .application import Application
from .config import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_NACOS_DATA_ID,
    DEFAULT_NACOS_GROUP,
    LOG_LEVELS,
    RemoteStoreConfig,
    apply_log_level,
)
from .console.output import ConsoleManager
from .exceptions import DomainMonitorError


# Configure module logger
logger = logging.getLogger(__name__)

HANDLER_NAME = "domain_monitor.console"


def setup_logging(log_level: str) -> None:
    """
    Configure logging to stdout.

    The handler passes every record; levels are set on the loggers so they
    can change at runtime when the configuration does.

    Args:
        log_level: Initial level name (debug, info, warn, error, ...)
    """
    formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.set_name(HANDLER_NAME)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.WARNING)
    # Replace the handler of an earlier call
    for handler in root_logger.handlers[:]:
        if handler.get_name() == HANDLER_NAME:
            root_logger.removeHandler(handler)
    root_logger.addHandler(console_handler)

    apply_log_level(log_level)
    logger.info(f"Logging initialized at {log_level.upper()} level")


@click.command()
@click.option('--nacos-addr', envvar='NACOS_ADDR', help='Nacos server address (host:port or URL)')
@click.option('--nacos-namespace', envvar='NACOS_NAMESPACE', help='Nacos namespace (tenant)')
@click.option(
    '--nacos-group',
    envvar='NACOS_GROUP',
    default=DEFAULT_NACOS_GROUP,
    show_default=True,
    help='Nacos configuration group'
)
@click.option(
    '--nacos-data-id',
    envvar='NACOS_DATA_ID',
    default=DEFAULT_NACOS_DATA_ID,
    show_default=True,
    help='Nacos configuration data ID'
)
@click.option('--nacos-username', envvar='NACOS_USERNAME', help='Nacos username')
@click.option('--nacos-password', envvar='NACOS_PASSWORD', help='Nacos password')
@click.option(
    '-f', '--config-file',
    envvar='CONFIG_FILE',
    type=click.Path(dir_okay=False),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help='Local configuration file, used when NACOS_ADDR is not set'
)
@click.option(
    '--max-concurrent-checks',
    envvar='MAX_CONCURRENT_CHECKS',
    type=click.IntRange(min=1),
    help='Override the number of concurrent WHOIS checks'
)
@click.option(
    '--log-level',
    envvar='LOG_LEVEL',
    type=click.Choice(list(LOG_LEVELS), case_sensitive=False),
    default='info',
    show_default=True,
    help='Log level until a configuration is loaded'
)
@click.option(
    '--debug',
    is_flag=True,
    default=False,
    help='Show stack traces with startup errors'
)
@click.version_option(__version__, prog_name='domain-monitor')
def cli(
    nacos_addr: Optional[str],
    nacos_namespace: Optional[str],
    nacos_group: str,
    nacos_data_id: str,
    nacos_username: Optional[str],
    nacos_password: Optional[str],
    config_file: str,
    max_concurrent_checks: Optional[int],
    log_level: str,
    debug: bool
) -> None:
    """
    Domain expiry monitor.

    Checks domain expiration dates over WHOIS and exposes them as Prometheus
    metrics. The domain list and settings are hot-reloaded from Nacos, or read
    once from a local YAML file when no Nacos address is configured.

    Examples:

        # Local configuration file
        domain-monitor -f config/domains.yml

        # Nacos configuration with authentication
        NACOS_ADDR=nacos:8848 NACOS_USERNAME=nacos NACOS_PASSWORD=secret domain-monitor
    """
    setup_logging(log_level.lower())

    console_manager = ConsoleManager(debug_mode=debug)

    remote = RemoteStoreConfig(
        addr=nacos_addr,
        namespace=nacos_namespace,
        group=nacos_group,
        data_id=nacos_data_id,
        username=nacos_username,
        password=nacos_password,
    )
    app = Application(
        remote,
        config_file=config_file,
        max_concurrent_checks=max_concurrent_checks,
        console=console_manager,
    )

    try:
        graceful = asyncio.run(app.run())

    except DomainMonitorError as e:
        logger.critical(f"Startup failed: {e.message}")
        console_manager.print_error(
            e.message,
            details={'error_type': type(e).__name__, **e.details},
            exception=e
        )
        sys.exit(1)

    except OSError as e:
        error_msg = str(e) if str(e) else f"{type(e).__name__} occurred"
        logger.critical(f"Startup failed: {error_msg}", exc_info=True)
        console_manager.print_error(
            error_msg,
            details={'error_type': type(e).__name__},
            exception=e
        )
        sys.exit(1)

    sys.exit(0 if graceful else 1)


def main() -> None:
    """Console script entry point."""
    load_dotenv()
    cli()


if __name__ == '__main__':
    main()

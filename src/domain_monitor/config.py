"""Configuration management for domain monitoring."""

import hashlib
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from .exceptions import ConfigParseError, ConfigValidationError

logger = logging.getLogger(__name__)


# Log level names accepted in the settings block, mapped to logging levels
LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'error': logging.ERROR,
    'fatal': logging.CRITICAL,
    'critical': logging.CRITICAL,
}

DEFAULT_CONFIG_FILE = 'config/domains.yml'
DEFAULT_NACOS_GROUP = 'DEFAULT_GROUP'
DEFAULT_NACOS_DATA_ID = 'domain-monitor-config'

# Integer settings read from the 'settings' block
INT_SETTINGS = (
    'check_interval',
    'expire_threshold_days',
    'max_concurrent_checks',
    'whois_retry_times',
    'whois_retry_interval',
    'metrics_port',
    'nacos_poll_interval',
)


@dataclass(frozen=True)
class MonitorConfig:
    """
    Immutable configuration snapshot.

    A new snapshot is published whenever the configuration source changes;
    components hold a reference and never mutate it.

    Attributes:
        domains: Ordered, de-duplicated domain names to monitor
        check_interval: Seconds between scheduled check cycles
        expire_threshold_days: Domains expiring within this many days are critical
        max_concurrent_checks: Size of the probe worker pool
        whois_retry_times: Extra WHOIS attempts after the first one fails
        whois_retry_interval: Seconds to sleep between WHOIS attempts
        metrics_port: Port of the metrics HTTP server
        log_level: Lower-case log level name
        nacos_poll_interval: Seconds between remote configuration polls
        content_hash: MD5 digest of the source payload (None for defaults)
    """
    domains: Tuple[str, ...] = ()
    check_interval: int = 3600
    expire_threshold_days: int = 15
    max_concurrent_checks: int = 50
    whois_retry_times: int = 3
    whois_retry_interval: int = 5
    metrics_port: int = 9394
    log_level: str = 'info'
    nacos_poll_interval: int = 60
    content_hash: Optional[str] = field(default=None, compare=False)

    def describe(self) -> str:
        """One-line summary used in log messages."""
        return (
            f"domains={len(self.domains)}, check_interval={self.check_interval}, "
            f"max_concurrent={self.max_concurrent_checks}, "
            f"expire_threshold_days={self.expire_threshold_days}, "
            f"metrics_port={self.metrics_port}"
        )


@dataclass(frozen=True)
class RemoteStoreConfig:
    """Connection settings for the Nacos configuration store."""
    addr: Optional[str] = None
    namespace: Optional[str] = None
    group: str = DEFAULT_NACOS_GROUP
    data_id: str = DEFAULT_NACOS_DATA_ID
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def enabled(self) -> bool:
        """Remote configuration is used only when an address is set."""
        return bool(self.addr and self.addr.strip())

    @property
    def auth_enabled(self) -> bool:
        """Username and password must be configured together."""
        return bool(self.username) and bool(self.password)

    def validate(self) -> None:
        """
        Validate the connection settings.

        Raises:
            ConfigValidationError: If a required value is missing
        """
        if not self.enabled:
            raise ConfigValidationError("NACOS_ADDR is required")
        if not self.group:
            raise ConfigValidationError("NACOS_GROUP is required")
        if not self.data_id:
            raise ConfigValidationError("NACOS_DATA_ID is required")
        if bool(self.username) != bool(self.password):
            logger.warning("Only one of NACOS_USERNAME/NACOS_PASSWORD is set, authentication disabled")


def compute_content_hash(payload: Union[bytes, str]) -> str:
    """
    Compute the digest used to detect configuration changes.

    Args:
        payload: Raw configuration payload

    Returns:
        Hex MD5 digest of the payload
    """
    if isinstance(payload, str):
        payload = payload.encode('utf-8')
    return hashlib.md5(payload).hexdigest()


def parse_config_document(
    payload: Union[bytes, str],
    base: Optional[MonitorConfig] = None
) -> MonitorConfig:
    """
    Parse and validate a YAML configuration document.

    Settings missing from the document keep the values of ``base``; the
    domain list is always taken from the document.

    Args:
        payload: Raw YAML payload
        base: Snapshot supplying values for absent settings (defaults if None)

    Returns:
        New validated MonitorConfig carrying the payload digest

    Raises:
        ConfigParseError: If the payload is not a YAML mapping
        ConfigValidationError: If any value is out of range
    """
    content_hash = compute_content_hash(payload)
    if isinstance(payload, bytes):
        try:
            payload = payload.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ConfigParseError(f"Configuration is not valid UTF-8: {e}")

    try:
        data = yaml.safe_load(payload)
    except yaml.YAMLError as e:
        raise ConfigParseError(f"Invalid YAML syntax: {e}")

    if not isinstance(data, dict):
        raise ConfigParseError(
            f"Invalid configuration format: expected mapping, got {type(data).__name__}"
        )

    return build_config(data, base or MonitorConfig(), content_hash=content_hash)


def build_config(
    data: Dict[str, Any],
    base: MonitorConfig,
    content_hash: Optional[str] = None
) -> MonitorConfig:
    """
    Build a snapshot from a parsed ``{domains, settings}`` document.

    Args:
        data: Parsed configuration mapping
        base: Snapshot supplying values for absent settings
        content_hash: Digest of the source payload

    Returns:
        Validated MonitorConfig

    Raises:
        ConfigValidationError: If any value has the wrong type or range
    """
    domains_data = data.get('domains') or []
    if not isinstance(domains_data, list):
        raise ConfigValidationError("'domains' must be a list")

    domains = []
    for idx, domain in enumerate(domains_data):
        if not isinstance(domain, str) or not domain.strip():
            raise ConfigValidationError(f"Invalid domain format at index {idx}: {domain!r}")
        domains.append(domain.strip())

    settings = data.get('settings') or {}
    if not isinstance(settings, dict):
        raise ConfigValidationError("'settings' must be a mapping")

    values: Dict[str, Any] = {}
    for name in INT_SETTINGS:
        if settings.get(name) is None:
            continue
        values[name] = _coerce_int(name, settings[name])

    if settings.get('log_level') is not None:
        values['log_level'] = str(settings['log_level']).strip().lower()

    config = replace(
        base,
        domains=tuple(dict.fromkeys(domains)),
        content_hash=content_hash,
        **values
    )
    validate_config(config)
    return config


def _coerce_int(name: str, value: Any) -> int:
    """Convert a setting to int, rejecting booleans and non-numeric strings."""
    if isinstance(value, bool):
        raise ConfigValidationError(f"'{name}' must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigValidationError(f"'{name}' must be an integer, got {value!r}")


def validate_config(config: MonitorConfig) -> None:
    """
    Validate configuration ranges.

    Args:
        config: Snapshot to validate

    Raises:
        ConfigValidationError: If validation fails with descriptive error message
    """
    if config.log_level not in LOG_LEVELS:
        raise ConfigValidationError(
            f"Invalid log level '{config.log_level}'. "
            f"Valid levels are: {', '.join(sorted(LOG_LEVELS))}"
        )

    if not 1 <= config.metrics_port <= 65535:
        raise ConfigValidationError("Metrics port must be between 1 and 65535")

    positive = {
        'check_interval': 'Check interval',
        'expire_threshold_days': 'Expire threshold days',
        'max_concurrent_checks': 'Max concurrent checks',
        'whois_retry_times': 'WHOIS retry times',
        'whois_retry_interval': 'WHOIS retry interval',
        'nacos_poll_interval': 'Nacos poll interval',
    }
    for attr, label in positive.items():
        if getattr(config, attr) <= 0:
            raise ConfigValidationError(f"{label} must be positive")

    for domain in config.domains:
        if not domain:
            raise ConfigValidationError("Domain name cannot be empty")


def load_local_config(file_path: Optional[str] = None) -> MonitorConfig:
    """
    Load the local fallback configuration file.

    A missing file is not an error: the defaults are used and a warning is
    logged.

    Args:
        file_path: Path to the YAML file (defaults to config/domains.yml)

    Returns:
        Validated MonitorConfig

    Raises:
        ConfigParseError: If the file cannot be read or parsed
        ConfigValidationError: If a value is out of range
    """
    path = Path(file_path or DEFAULT_CONFIG_FILE)

    if not path.exists():
        logger.warning(f"Configuration file {path} not found, using defaults")
        return MonitorConfig()

    try:
        payload = path.read_bytes()
    except OSError as e:
        raise ConfigParseError(f"Failed to read configuration file {path}: {e}")

    config = parse_config_document(payload)
    logger.info(f"Configuration loaded successfully from {path}")
    return config


def apply_log_level(level_name: str) -> None:
    """Set the package logger level from a configured level name."""
    logging.getLogger('domain_monitor').setLevel(LOG_LEVELS.get(level_name.lower(), logging.INFO))


def apply_overrides(
    config: MonitorConfig,
    max_concurrent_checks: Optional[int] = None
) -> MonitorConfig:
    """
    Apply process-level overrides on top of a snapshot.

    Args:
        config: Snapshot from the configuration source
        max_concurrent_checks: Worker-pool size override

    Returns:
        The same snapshot, or a copy with the overrides applied
    """
    if max_concurrent_checks is None or max_concurrent_checks == config.max_concurrent_checks:
        return config
    if max_concurrent_checks <= 0:
        raise ConfigValidationError("Max concurrent checks must be positive")
    return replace(config, max_concurrent_checks=max_concurrent_checks)

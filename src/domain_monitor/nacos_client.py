"""HTTP client for the Nacos configuration store."""

import asyncio
import logging
import time
from typing import Callable, Dict, Optional, Tuple

import aiohttp

from .config import RemoteStoreConfig
from .exceptions import AuthenticationError, ConfigFetchError

logger = logging.getLogger(__name__)


class NacosClient:
    """
    Fetches the raw configuration payload from Nacos.

    When credentials are configured the client logs in for an access token,
    attaches it to every fetch, refreshes it shortly before it expires and
    once more after the server rejects it.
    """

    CONFIG_PATH = '/nacos/v1/cs/configs'
    LOGIN_PATH = '/nacos/v1/auth/login'

    # Refresh the token when it expires within this many seconds
    TOKEN_REFRESH_MARGIN = 300
    # Nacos default when the login response omits tokenTtl
    DEFAULT_TOKEN_TTL = 18000

    def __init__(
        self,
        settings: RemoteStoreConfig,
        timeout: float = 10.0,
        connect_timeout: float = 5.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the client.

        Args:
            settings: Nacos connection settings
            timeout: Total seconds allowed per HTTP request
            connect_timeout: Seconds allowed to establish the connection
            clock: Monotonic time source (injectable for tests)
        """
        self.settings = settings
        self.timeout = aiohttp.ClientTimeout(total=timeout, connect=connect_timeout)
        self._clock = clock
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

        addr = settings.addr.strip().rstrip('/') if settings.addr else ''
        if addr and '://' not in addr:
            addr = f"http://{addr}"
        self.base_url = addr

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def token_needs_refresh(self) -> bool:
        """True when there is no token or it expires within the safety margin."""
        if not self._access_token:
            return True
        return self._clock() >= self._token_expires_at - self.TOKEN_REFRESH_MARGIN

    def invalidate_token(self) -> None:
        self._access_token = None
        self._token_expires_at = 0.0

    async def login(self) -> str:
        """
        Exchange username and password for an access token.

        Returns:
            The new access token

        Raises:
            AuthenticationError: If the credentials are rejected or the answer is malformed
            ConfigFetchError: If the server cannot be reached
        """
        url = f"{self.base_url}{self.LOGIN_PATH}"
        logger.debug(f"Logging in to Nacos at {url} as {self.settings.username}")

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(
                    url,
                    data={'username': self.settings.username, 'password': self.settings.password},
                ) as response:
                    if response.status >= 300:
                        body = await response.text()
                        raise AuthenticationError(
                            f"Nacos login failed: HTTP {response.status}",
                            details={'body': body[:200]},
                        )
                    try:
                        data = await response.json(content_type=None)
                    except ValueError as e:
                        raise AuthenticationError(f"Nacos login returned invalid JSON: {e}")
        except asyncio.TimeoutError:
            raise ConfigFetchError("Nacos login timed out")
        except aiohttp.ClientError as e:
            raise ConfigFetchError(f"Nacos login failed: {e}")

        token = data.get('accessToken') if isinstance(data, dict) else None
        if not token:
            raise AuthenticationError("Nacos login response has no accessToken")

        try:
            ttl = int(data.get('tokenTtl') or self.DEFAULT_TOKEN_TTL)
        except (TypeError, ValueError):
            ttl = self.DEFAULT_TOKEN_TTL

        self._access_token = token
        self._token_expires_at = self._clock() + ttl
        logger.info(f"Nacos authentication succeeded, token valid for {ttl}s")
        return token

    async def fetch(self) -> bytes:
        """
        Read the configuration payload.

        Returns:
            Raw payload bytes

        Raises:
            ConfigFetchError: On network failure or a non-2xx answer
            AuthenticationError: If logging in fails
        """
        auth = self.settings.auth_enabled
        if auth and self.token_needs_refresh():
            await self.login()

        status, body = await self._get_config()

        if auth and status in (401, 403):
            logger.warning(f"Nacos rejected the access token (HTTP {status}), re-authenticating")
            self.invalidate_token()
            await self.login()
            status, body = await self._get_config()

        if not 200 <= status < 300:
            preview = body[:200].decode('utf-8', errors='replace')
            logger.error(f"Failed to fetch configuration: HTTP {status} - {preview}")
            raise ConfigFetchError(f"Failed to fetch configuration: HTTP {status}")

        logger.debug(f"Fetched configuration payload ({len(body)} bytes)")
        return body

    async def _get_config(self) -> Tuple[int, bytes]:
        url = f"{self.base_url}{self.CONFIG_PATH}"
        params = self.config_params()
        headers: Dict[str, str] = {}
        if self._access_token:
            params['accessToken'] = self._access_token
            headers['Authorization'] = f"Bearer {self._access_token}"

        logger.debug(
            f"Requesting config from {url} (dataId={params['dataId']}, group={params['group']})"
        )
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url, params=params, headers=headers) as response:
                    return response.status, await response.read()
        except asyncio.TimeoutError:
            raise ConfigFetchError("Request to Nacos timed out")
        except aiohttp.ClientError as e:
            raise ConfigFetchError(f"Request to Nacos failed: {e}")

    def config_params(self) -> Dict[str, str]:
        """Query parameters identifying the configuration entry."""
        params = {
            'dataId': self.settings.data_id,
            'group': self.settings.group,
        }
        if self.settings.namespace:
            params['tenant'] = self.settings.namespace
        return params

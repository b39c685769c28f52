"""
WHOIS checker for domain expiration dates.

Queries the registry WHOIS server over TCP port 43, retries transient
failures according to the configured retry policy, and extracts the expiry
date with the strategies in :mod:`whois_parser`.
"""

import asyncio
import logging
import re
import time
from typing import Dict

from ..config import MonitorConfig
from ..exceptions import WhoisParseError, WhoisTransientError
from ..retry import RetryPolicy
from .base_checker import BaseChecker, CheckResult
from .whois_parser import days_until_expiry, decode_response, extract_expiry_date

logger = logging.getLogger(__name__)


WHOIS_PORT = 43
IANA_WHOIS_SERVER = 'whois.iana.org'
READ_CHUNK_SIZE = 4096

# Servers that need a prefix to return an exact-match record only
QUERY_PREFIXES = {
    'whois.verisign-grs.com': '=',
}

_REFER_PATTERN = re.compile(r'^(?:refer|whois):\s*(\S+)', re.IGNORECASE | re.MULTILINE)


def to_ascii(domain: str) -> str:
    """Convert an internationalized domain to its punycode form."""
    domain = domain.strip().rstrip('.').lower()
    if domain.isascii():
        return domain
    try:
        return domain.encode('idna').decode('ascii')
    except UnicodeError:
        return domain


class WhoisChecker(BaseChecker):
    """
    Checker resolving one domain's expiration date via WHOIS.

    Error results distinguish:
    - timeout: every attempt timed out
    - network: connection or I/O failures after all retries
    - no_expiry_date: a response arrived but contained no usable date (not retried)
    - internal: unexpected failure while handling the response
    """

    def __init__(self, timeout: float = 15, iana_server: str = IANA_WHOIS_SERVER, port: int = WHOIS_PORT):
        """
        Initialize the WHOIS checker.

        Args:
            timeout: Total seconds allowed for one lookup attempt (default: 15)
            iana_server: Server used to discover the registry server of a TLD
            port: WHOIS TCP port
        """
        super().__init__(timeout=timeout)
        self.iana_server = iana_server
        self.port = port
        self._server_cache: Dict[str, str] = {}

    async def check(self, domain: str, config: MonitorConfig) -> CheckResult:
        """
        Execute the WHOIS check with retries.

        Args:
            domain: The domain name to check
            config: Snapshot providing the retry settings

        Returns:
            SUCCESS with the expiry date, or ERROR describing the failure
        """
        policy = RetryPolicy(
            max_retries=config.whois_retry_times,
            interval=config.whois_retry_interval,
        )
        check_start_time = time.time()
        logger.debug(f"Starting WHOIS check for domain: {domain}")

        attempt = 0
        while True:
            attempt += 1
            try:
                text = await self.lookup(domain)
                expiry_date = extract_expiry_date(domain, text)
                if expiry_date is None:
                    raise WhoisParseError("No expiry date found in WHOIS response")

                days = days_until_expiry(expiry_date)
                logger.debug(
                    f"Domain {domain} expires on {expiry_date} ({days} days), "
                    f"checked in {time.time() - check_start_time:.3f}s"
                )
                return CheckResult.success(
                    domain=domain,
                    expiry_date=expiry_date,
                    days_until_expiry=days,
                    attempts=attempt,
                )

            except WhoisParseError as e:
                logger.warning(f"Failed to extract expiry date for {domain}: {e}")
                return CheckResult.error(domain, str(e), 'no_expiry_date', attempts=attempt)

            except WhoisTransientError as e:
                if policy.should_retry(attempt, e):
                    logger.warning(
                        f"Error checking {domain}: {e}, retrying "
                        f"({attempt}/{policy.max_retries})"
                    )
                    await asyncio.sleep(policy.delay(attempt))
                    continue

                if e.timed_out:
                    logger.error(f"Timeout checking domain {domain} after {attempt} attempts")
                    return CheckResult.error(
                        domain, f"Timeout after {attempt} attempts", 'timeout', attempts=attempt
                    )
                logger.error(f"Failed to check domain {domain} after {attempt} attempts: {e}")
                return CheckResult.error(
                    domain, f"Network error after {attempt} attempts: {e}", 'network', attempts=attempt
                )

            except Exception as e:
                logger.error(f"WHOIS check failed for {domain}: {e}", exc_info=True)
                return CheckResult.error(
                    domain, f"WHOIS check failed: {e}", 'internal', attempts=attempt
                )

    async def lookup(self, domain: str) -> str:
        """
        Fetch the decoded WHOIS record of a domain within the attempt timeout.

        Args:
            domain: The domain name to look up

        Returns:
            Decoded response text

        Raises:
            WhoisTransientError: On timeout or connection failure
        """
        try:
            return await asyncio.wait_for(self._lookup(domain), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise WhoisTransientError(f"WHOIS query timed out after {self.timeout}s", timed_out=True)
        except OSError as e:
            raise WhoisTransientError(f"{type(e).__name__}: {e}")

    async def _lookup(self, domain: str) -> str:
        ascii_domain = to_ascii(domain)
        server = await self._find_server(ascii_domain)
        query = f"{QUERY_PREFIXES.get(server, '')}{ascii_domain}"
        logger.debug(f"Querying {server} for {domain}")
        raw = await self._query_server(server, query)
        return decode_response(raw)

    async def _find_server(self, domain: str) -> str:
        """
        Find the registry WHOIS server for the domain's TLD via IANA.

        Results are cached per TLD for the lifetime of the checker.
        """
        tld = domain.rstrip('.').rsplit('.', 1)[-1].lower()
        server = self._server_cache.get(tld)
        if server:
            return server

        raw = await self._query_server(self.iana_server, tld)
        match = _REFER_PATTERN.search(decode_response(raw))
        if match:
            server = match.group(1).lower()
        else:
            server = f"{tld}.whois-servers.net"
            logger.debug(f"IANA has no WHOIS referral for .{tld}, falling back to {server}")

        self._server_cache[tld] = server
        return server

    async def _query_server(self, server: str, query: str) -> bytes:
        """
        Send one query and read the response until the server closes.

        Args:
            server: WHOIS server hostname
            query: Query line without terminator

        Returns:
            Raw response bytes
        """
        reader, writer = await asyncio.open_connection(server, self.port)
        try:
            writer.write(f"{query}\r\n".encode('utf-8'))
            await writer.drain()

            chunks = []
            while True:
                data = await reader.read(READ_CHUNK_SIZE)
                if not data:
                    break
                chunks.append(data)
            return b''.join(chunks)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug(f"Error closing connection to {server}: {e}")

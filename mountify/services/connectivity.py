"""TCP reachability probe for a server profile's host:port."""

import asyncio
import logging

from ..core.exceptions import ConnectionTimeoutError
from ..models import ConnectionTestResult

UNREACHABLE = "Cannot reach server or port is not accessible"


class ConnectivityProber:
    """
    Opens (and immediately closes) a TCP connection to host:port.

    Only reachability is tested, never credentials. The timeout is enforced
    by ``asyncio.wait_for``, which cancels the pending connect, so nothing
    keeps running after the caller gets its answer.
    """

    async def test_connection(self, host: str, port: int, timeout_ms: int) -> ConnectionTestResult:
        timeout = max(timeout_ms, 1) / 1000
        logging.debug(f"Testing TCP connectivity to {host}:{port} (timeout {timeout:g}s)")

        try:
            await self._probe(host, port, timeout)
        except ConnectionTimeoutError as e:
            logging.info(f"Connection test to {host}:{port} timed out after {timeout:g}s")
            return ConnectionTestResult(success=False, error=str(e))
        except (OSError, ValueError) as e:
            # ValueError: host name that cannot be IDNA-encoded
            logging.info(f"Connection test to {host}:{port} failed: {e}")
            return ConnectionTestResult(success=False, error=UNREACHABLE)

        logging.info(f"Connection test to {host}:{port} succeeded")
        return ConnectionTestResult(success=True)

    async def _probe(self, host: str, port: int, timeout: float) -> None:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=timeout
            )
        except asyncio.TimeoutError:
            raise ConnectionTimeoutError()

        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logging.debug(f"Closing probe connection to {host}:{port}: {e}")

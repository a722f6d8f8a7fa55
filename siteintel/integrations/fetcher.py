"""
Fetch Strategy Resolver

Retrieves raw content for a URL with two network identities:
- Primary: httpx async client
- Fallback: an external curl process (different TLS fingerprint), used when
  the primary connection is rejected at the transport layer by bot defenses

fetch() never raises. Every caller runs inside a best-effort background
pipeline, so a failed fetch comes back as FetchResult(ok=False, status=0).
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import httpx

from siteintel.utils.config import get_settings

logger = logging.getLogger(__name__)


# Appended by curl after the body (--write-out), stripped before returning
STATUS_MARKER = "\n__SITEINTEL_HTTP_STATUS__:"

# Hard ceiling for the fallback process, whatever the configuration says
MAX_FALLBACK_TIMEOUT = 15.0

READ_CHUNK_SIZE = 64 * 1024

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "ar,en;q=0.9",
}

# Transport-level rejections (TLS handshake reset, dropped connection).
# A normal 4xx/5xx is a response, not a block.
BLOCKED_ERRORS = (httpx.ConnectError, httpx.ReadError, httpx.RemoteProtocolError)


class FetchOutputTooLargeError(Exception):
    """Raised when the fallback process produces more output than allowed."""

    def __init__(self, limit: int):
        super().__init__(f"Fallback output exceeded {limit} bytes")
        self.limit = limit


@dataclass
class FetchResult:
    """Outcome of a single fetch."""
    ok: bool
    status: int
    body: str
    elapsed_ms: int = 0
    via: str = "none"  # httpx, curl, none

    @classmethod
    def failed(cls) -> "FetchResult":
        return cls(ok=False, status=0, body="")


def parse_fallback_output(raw: bytes) -> Tuple[int, str]:
    """
    Split curl output into (status, body).

    The status marker is always the last thing curl writes, so the final
    occurrence is authoritative even if the body happens to contain it.
    Returns status 0 when the marker is missing or unparseable.
    """
    text = raw.decode("utf-8", errors="replace")
    body, marker, status_text = text.rpartition(STATUS_MARKER)
    if not marker:
        return 0, text

    try:
        status = int(status_text.strip())
    except ValueError:
        return 0, body

    return status, body


class FetchResolver:
    """
    Fetches URLs, falling back to curl when the primary client is blocked.

    Usage:
        async with FetchResolver() as resolver:
            result = await resolver.fetch("https://example.com")
            if result.ok:
                html = result.body
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_output_bytes: Optional[int] = None,
        fallback_enabled: Optional[bool] = None,
        curl_binary: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize resolver.

        Args:
            timeout: Request timeout in seconds (defaults to FETCH_TIMEOUT)
            max_output_bytes: Output cap for the fallback process
            fallback_enabled: Whether the curl fallback may be used
            curl_binary: Path or name of the curl executable
            client: Pre-built httpx client (tests inject a MockTransport)
        """
        settings = get_settings()
        self.timeout = timeout if timeout is not None else settings.FETCH_TIMEOUT
        self.max_output_bytes = (
            settings.FETCH_MAX_OUTPUT_BYTES if max_output_bytes is None else max_output_bytes
        )
        self.fallback_enabled = (
            settings.FALLBACK_FETCH_ENABLED if fallback_enabled is None else fallback_enabled
        )
        self.curl_binary = curl_binary or settings.CURL_BINARY

        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
        return self._client

    async def fetch(self, url: str, headers: Optional[Dict[str, str]] = None) -> FetchResult:
        """
        Fetch a URL.

        Args:
            url: Absolute URL
            headers: Header overrides merged over DEFAULT_HEADERS

        Returns:
            FetchResult; ok is True for 2xx/3xx responses
        """
        merged_headers = {**DEFAULT_HEADERS, **(headers or {})}
        start = time.monotonic()

        try:
            response = await self._get_client().get(url, headers=merged_headers)
            return FetchResult(
                ok=200 <= response.status_code < 400,
                status=response.status_code,
                body=response.text,
                elapsed_ms=int((time.monotonic() - start) * 1000),
                via="httpx",
            )
        except BLOCKED_ERRORS as e:
            logger.warning(
                f"Primary fetch rejected for {url} ({type(e).__name__}: {e}), "
                f"switching to fallback client"
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Primary fetch timed out for {url}: {e}")
            return FetchResult.failed()
        except Exception as e:
            logger.warning(f"Primary fetch failed for {url}: {e}")
            return FetchResult.failed()

        if not self.fallback_enabled:
            return FetchResult.failed()

        return await self._fetch_with_fallback(url, merged_headers)

    async def _fetch_with_fallback(self, url: str, headers: Dict[str, str]) -> FetchResult:
        """Fetch through the external curl process."""
        timeout = min(self.timeout, MAX_FALLBACK_TIMEOUT)
        start = time.monotonic()

        try:
            # Small grace period over curl's own --max-time
            raw = await asyncio.wait_for(
                self._run_curl(url, headers, timeout),
                timeout=timeout + 1.0,
            )
        except FetchOutputTooLargeError as e:
            logger.warning(f"Fallback fetch for {url} aborted: {e}")
            return FetchResult.failed()
        except asyncio.TimeoutError:
            logger.warning(f"Fallback fetch for {url} timed out after {timeout:.0f}s")
            return FetchResult.failed()
        except Exception as e:
            logger.warning(f"Fallback fetch for {url} failed: {e}")
            return FetchResult.failed()

        status, body = parse_fallback_output(raw)
        if status == 0:
            logger.warning(f"Fallback fetch for {url} returned no HTTP status")
            return FetchResult.failed()

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(f"Fallback fetch for {url}: HTTP {status}, {len(body)} chars in {elapsed_ms}ms")

        return FetchResult(
            ok=200 <= status < 400,
            status=status,
            body=body,
            elapsed_ms=elapsed_ms,
            via="curl",
        )

    def build_curl_command(self, url: str, headers: Dict[str, str], timeout: float) -> List[str]:
        """Build the curl argument list (no shell involved)."""
        command = [
            self.curl_binary,
            "--silent",
            "--show-error",
            "--location",
            "--compressed",
            "--max-time", str(int(timeout)),
            "--write-out", f"{STATUS_MARKER}%{{http_code}}",
        ]
        for name, value in headers.items():
            command.extend(["--header", f"{name}: {value}"])
        command.append(url)
        return command

    async def _run_curl(self, url: str, headers: Dict[str, str], timeout: float) -> bytes:
        """Run curl and collect stdout, killing it once the output cap is hit."""
        process = await asyncio.create_subprocess_exec(
            *self.build_curl_command(url, headers, timeout),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )

        chunks: List[bytes] = []
        total = 0
        try:
            while True:
                chunk = await process.stdout.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                total += len(chunk)
                if total > self.max_output_bytes:
                    raise FetchOutputTooLargeError(self.max_output_bytes)
                chunks.append(chunk)
            await process.wait()
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()

        return b"".join(chunks)

    async def close(self):
        """Close the HTTP client if this resolver created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

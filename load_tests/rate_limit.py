"""
Rate limit handling

Reads the usual ``X-RateLimit-*`` / ``X-Rate-Limit-*`` headers and backs
off when the API says so. The backoff blocks only the calling user's
iteration; the original request is not retried, the next iteration is.
"""

import logging
import re
import time
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import Callable, Optional

from load_tests.checks import CheckRecorder
from load_tests.metrics import ApiMetrics
from load_tests.transport import Response

logger = logging.getLogger(__name__)

DEFAULT_WAIT_SECONDS = 60
RESET_BUFFER_SECONDS = 1


@dataclass(frozen=True)
class RateLimitInfo:
    limit: int
    remaining: int
    reset: int  # unix timestamp, seconds
    retry_after: Optional[int] = None


_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _header_int(headers, *names: str) -> Optional[int]:
    """First header among ``names`` with a leading integer ("1.5" reads as 1)."""
    for name in names:
        match = _LEADING_INT.match(headers.get(name) or "")
        if match:
            return int(match.group(1))
    return None


def parse_retry_after(headers, now: Optional[float] = None) -> Optional[int]:
    """Retry-After as whole seconds; accepts delta seconds or an HTTP date."""
    value = headers.get("Retry-After")
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value) or None

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    now = time.time() if now is None else now
    return max(int(retry_at.timestamp() - now), 0) or None


def extract_rate_limit_info(response: Response, now: Optional[float] = None) -> Optional[RateLimitInfo]:
    """Parse rate limit headers; None when the response carries no limit header."""
    headers = response.headers
    limit = _header_int(headers, "X-RateLimit-Limit", "X-Rate-Limit-Limit")
    if not limit:
        return None

    return RateLimitInfo(
        limit=limit,
        remaining=_header_int(headers, "X-RateLimit-Remaining", "X-Rate-Limit-Remaining") or 0,
        reset=_header_int(headers, "X-RateLimit-Reset", "X-Rate-Limit-Reset") or 0,
        retry_after=parse_retry_after(headers, now),
    )


def compute_wait_seconds(retry_after: Optional[int], reset: Optional[int], now: float) -> int:
    """Retry-After wins, then time until reset plus a one second buffer, else 60s."""
    if retry_after:
        return retry_after
    if reset:
        return max(reset - int(now), 0) + RESET_BUFFER_SECONDS
    return DEFAULT_WAIT_SECONDS


class RateLimitHandler:
    def __init__(
        self,
        metrics: Optional[ApiMetrics] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.metrics = metrics or ApiMetrics()
        self.sleep = sleep
        self.clock = clock

    def info(self, response: Response) -> Optional[RateLimitInfo]:
        return extract_rate_limit_info(response, self.clock())

    def is_rate_limited(self, response: Response) -> bool:
        if response.status == 429:
            self.metrics.rate_limit_hit.add(1)
            return True

        info = self.info(response)
        if info and info.remaining == 0:
            self.metrics.rate_limit_hit.add(1)
            return True

        return False

    def update_metrics(self, response: Response) -> None:
        info = self.info(response)
        if not info:
            return

        self.metrics.rate_limit_remaining.set(info.remaining)
        seconds_until_reset = info.reset - int(self.clock())
        if seconds_until_reset > 0:
            self.metrics.rate_limit_reset.set(seconds_until_reset)

    def wait_seconds(self, response: Response) -> int:
        now = self.clock()
        info = extract_rate_limit_info(response, now)
        retry_after = info.retry_after if info else parse_retry_after(response.headers, now)
        return compute_wait_seconds(retry_after, info.reset if info else None, now)

    def handle(self, response: Response) -> bool:
        """Sleep out a rate limit. True if we waited; the request is not retried."""
        if not self.is_rate_limited(response):
            self.update_metrics(response)
            return False

        logger.warning(f"Rate limit hit! Status: {response.status}")
        wait = self.wait_seconds(response)
        logger.warning(f"Waiting {wait} seconds before the next iteration...")
        self.sleep(wait)
        return True

    def check_rate_limit(self, response: Response, checks: CheckRecorder) -> bool:
        info = self.info(response)
        if not info:
            logger.warning("No rate limit information found in response headers")
            return False

        return checks.check(
            response,
            {
                "rate limit not exceeded": lambda r: not self.is_rate_limited(r),
                "rate limit remaining > 0": lambda r: info.remaining > 0,
                "rate limit headers present": lambda r: info.limit > 0,
            },
        )

    def calculate_optimal_think_time(self, response: Response) -> float:
        """Spread the remaining quota over the time left, with a 20% margin."""
        info = self.info(response)
        if not info or info.remaining == 0:
            return 1.0

        seconds_until_reset = max(info.reset - int(self.clock()), 1)
        safe_requests_per_second = info.remaining / seconds_until_reset
        return max((1 / safe_requests_per_second) * 1.2, 0.1)

    def smart_sleep(self, response: Response, base_think_time: float = 1.0) -> float:
        info = self.info(response)
        if not info or info.remaining > info.limit * 0.1:
            pause = base_think_time
        else:
            pause = self.calculate_optimal_think_time(response)
            logger.info(f"Adjusting think time to {pause:.2f}s to avoid rate limit")
        self.sleep(pause)
        return pause

    def describe(self, response: Response) -> str:
        info = self.info(response)
        if not info:
            return "No rate limit information available"

        lines = [
            "Rate Limit Info:",
            f"  Limit: {info.limit}",
            f"  Remaining: {info.remaining}",
            f"  Reset in: {info.reset - int(self.clock())} seconds",
        ]
        if info.retry_after:
            lines.append(f"  Retry after: {info.retry_after} seconds")
        return "\n".join(lines)

    def validate_headers(self, response: Response) -> bool:
        info = self.info(response)
        if not info:
            logger.warning("Expected rate limit headers not found in response")
            return False

        logger.info(f"Rate Limit: {info.remaining}/{info.limit} requests remaining")
        return True

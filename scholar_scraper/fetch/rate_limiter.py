import asyncio
import fnmatch
import random
import time
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from urllib.parse import urlparse
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..config import DELAY_RANGE, SLOW_DELAY_RANGE

logger = logging.getLogger(__name__)

DelayPolicy = Callable[[], float]


def random_delay_policy(slow: bool = False, rng: Optional[random.Random] = None) -> DelayPolicy:
    """Delay drawn per request: 1-5s normally, 6-15s in slow mode"""
    rng = rng or random.Random()
    low, high = SLOW_DELAY_RANGE if slow else DELAY_RANGE

    def draw() -> float:
        return float(rng.randint(low, high))

    return draw


def no_delay() -> float:
    return 0.0


@dataclass
class LimitRule:
    """Limits applied to every domain matching domain_glob"""
    domain_glob: str = "*"
    parallelism: int = 1   # max concurrent requests
    delay: DelayPolicy = no_delay

    def matches(self, domain: str) -> bool:
        return fnmatch.fnmatch(domain, self.domain_glob)


@dataclass
class DomainSettings:
    """Settings and state for a specific domain"""
    rule: LimitRule
    semaphore: asyncio.Semaphore
    last_release_time: float = 0.0  # when the previous request gave up its slot
    backoff: float = 1.0  # multiplier on the drawn delay


class RateLimiter:
    """Per-domain concurrency and delay limits.

    A request holds its domain slot from before the fetch until every
    callback for that page has returned. With parallelism 1 this serializes
    pages on the domain.
    """

    def __init__(self, rules: Optional[List[LimitRule]] = None):
        self.rules: List[LimitRule] = list(rules or [])
        self.domain_settings: Dict[str, DomainSettings] = {}
        self.domain_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def add_rule(self, rule: LimitRule):
        self.rules.append(rule)
        return self

    def get_domain(self, url: str) -> str:
        """Extract domain from URL"""
        return urlparse(url).netloc.lower()

    def find_rule(self, domain: str) -> Optional[LimitRule]:
        for rule in self.rules:
            if rule.matches(domain):
                return rule
        return None

    def _settings_for(self, domain: str) -> Optional[DomainSettings]:
        if domain not in self.domain_settings:
            rule = self.find_rule(domain)
            if rule is None:
                return None
            self.domain_settings[domain] = DomainSettings(
                rule=rule,
                semaphore=asyncio.Semaphore(max(1, rule.parallelism))
            )
        return self.domain_settings[domain]

    @asynccontextmanager
    async def slot(self, url: str):
        """Hold a request slot for url's domain, waiting out the delay first"""
        domain = self.get_domain(url)
        settings = self._settings_for(domain)
        if settings is None:
            yield
            return

        async with settings.semaphore:
            await self.wait_for_rate_limit(domain, settings)
            try:
                yield
            finally:
                settings.last_release_time = time.time()

    async def wait_for_rate_limit(self, domain: str, settings: DomainSettings):
        """Wait out the drawn delay, counted from the end of the previous request"""
        async with self.domain_locks[domain]:
            delay = settings.rule.delay() * settings.backoff

            if settings.last_release_time:
                time_since_last = time.time() - settings.last_release_time
                if time_since_last < delay:
                    wait_time = delay - time_since_last
                    logger.debug(f"Rate limiting {domain}: waiting {wait_time:.1f}s")
                    await asyncio.sleep(wait_time)

    def request_completed(self, url: str, response_time: float, status_code: int):
        """Called after request completion to update state"""
        domain = self.get_domain(url)
        settings = self.domain_settings.get(domain)
        if settings is None:
            return

        self._adaptive_rate_adjustment(domain, settings, status_code, response_time)

    def _adaptive_rate_adjustment(self, domain: str, settings: DomainSettings,
                                  status_code: int, response_time: float):
        """Adjust the delay multiplier based on server response"""
        if status_code == 429:  # Too Many Requests
            settings.backoff *= 2
            logger.info(f"Rate limit hit for {domain}, delay multiplier now {settings.backoff:.1f}")

        elif status_code >= 500:
            settings.backoff *= 1.5
            logger.info(f"Server error for {domain}, delay multiplier now {settings.backoff:.1f}")

        # Gradually reduce the multiplier for fast, successful responses
        elif status_code == 200 and response_time < 2:
            settings.backoff = max(1.0, settings.backoff * 0.95)

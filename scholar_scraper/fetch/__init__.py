"""
Fetch layer - asynchronous collector, rate limiting and callback payloads
"""

from .collector import Collector
from .rate_limiter import LimitRule, RateLimiter, random_delay_policy
from .response import HTMLElement, Request, Response

__all__ = [
    'Collector',
    'LimitRule',
    'RateLimiter',
    'random_delay_policy',
    'HTMLElement',
    'Request',
    'Response'
]

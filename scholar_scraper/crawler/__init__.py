"""
Crawler - pagination state machine over the fetch layer
"""

from .controller import CrawlController

__all__ = ['CrawlController']

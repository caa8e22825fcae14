#!/usr/bin/env python3
"""
Scholar Scraper
Crawls Google Scholar result listings and saves matching records to CSV
"""

import sys

from scholar_scraper.cli import main

if __name__ == "__main__":
    sys.exit(main())

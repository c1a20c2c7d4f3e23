"""
External tool wrappers for the trend-fusion pipeline.

This package provides async clients for all external services used by the
pipeline:

- ClaudeClient: Anthropic Claude API for every generative call
- HackerNewsClient: Algolia Hacker News search for high-signal AI stories
- ArxivClient: recent papers from the AI/ML arXiv categories
- RSSFeedClient: lab and newsletter RSS feeds
- TelegramNotifier: run summaries and error alerts
"""

from src.tools.claude_client import ClaudeClient
from src.tools.hackernews import HackerNewsClient
from src.tools.arxiv import ArxivClient
from src.tools.rss import RSSFeedClient
from src.tools.telegram_notifier import TelegramNotifier

__all__ = [
    "ClaudeClient",
    "HackerNewsClient",
    "ArxivClient",
    "RSSFeedClient",
    "TelegramNotifier",
]

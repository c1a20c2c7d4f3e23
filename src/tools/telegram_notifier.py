"""
Telegram notification sink for pipeline run summaries.

A lightweight sender built on ``python-telegram-bot``: it pushes messages to
one chat through the Bot API and never starts polling, so it can be
embedded in the pipeline without side effects.

Configuration errors (missing token / chat id) fail fast at construction;
delivery errors raise :class:`~src.exceptions.NotificationError` and the
orchestrator logs them without failing the run.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

from telegram import Bot
from telegram.error import TelegramError

from src.exceptions import NotificationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Telegram message limits
# ---------------------------------------------------------------------------
_MAX_MESSAGE_LENGTH = 4096


def _truncate(text: str, max_length: int = _MAX_MESSAGE_LENGTH) -> str:
    """Truncate *text* to fit within Telegram's message size limit."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 20] + "\n...(truncated)"


class TelegramNotifier:
    """
    Push plain-text messages to a single Telegram chat.

    Args:
        bot_token: Telegram Bot API token (from BotFather).
        chat_id: Target chat / group / channel ID.
        bot: Optional pre-built ``telegram.Bot`` (tests inject a mock).

    Usage::

        notifier = TelegramNotifier.from_env()
        if notifier:
            await notifier.send("Pipeline run completed successfully.")
    """

    def __init__(self, bot_token: str, chat_id: str, bot: Optional[Any] = None) -> None:
        if not bot_token:
            raise ValueError("TelegramNotifier requires a non-empty bot_token")
        if not chat_id:
            raise ValueError("TelegramNotifier requires a non-empty chat_id")

        self._chat_id: str = chat_id
        self._bot: Any = bot or Bot(token=bot_token)

    @classmethod
    def from_env(cls) -> Optional["TelegramNotifier"]:
        """Build from ``TELEGRAM_BOT_TOKEN`` / ``TELEGRAM_CHAT_ID``, or ``None``."""
        token = os.environ.get("TELEGRAM_BOT_TOKEN", "")
        chat_id = os.environ.get("TELEGRAM_CHAT_ID", "")
        if not token or not chat_id:
            return None
        return cls(token, chat_id)

    async def send(self, message: str) -> None:
        """
        Send a plain text message to the configured chat.

        Raises:
            NotificationError: If the Bot API rejects or drops the message.
        """
        try:
            await self._bot.send_message(chat_id=self._chat_id, text=_truncate(message))
        except TelegramError as exc:
            raise NotificationError(f"Telegram delivery failed: {exc}") from exc
        logger.debug("[TELEGRAM] Message sent (%d chars)", len(message))

    async def send_log(self, message: str) -> None:
        """Forward a high-severity log line (used by ``AgentLogger``)."""
        await self.send(message)

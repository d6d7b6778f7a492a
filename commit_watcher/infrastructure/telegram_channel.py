"""Telegram Bot API delivery channel."""

import logging
import os
from typing import Optional

import requests

from commit_watcher.domain.errors import DeliveryFailure

logger = logging.getLogger(__name__)


class TelegramChannel:
    """Sends text messages to Telegram chats through the Bot API.
    
    Owns one long-lived HTTP session; close() releases it on shutdown.
    """
    
    API_URL = "https://api.telegram.org"
    DEFAULT_TIMEOUT_SECONDS = 10
    
    def __init__(
        self,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        parse_mode: Optional[str] = "HTML",
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Telegram channel.
        
        Args:
            token: Bot token. If None, uses TELEGRAM_BOT_TOKEN env var.
            api_url: Bot API root
            timeout: Timeout in seconds for each send
            parse_mode: Telegram parse mode applied to every message
            session: Optional pre-built session (used by tests)
        """
        if token is None:
            token = os.getenv("TELEGRAM_BOT_TOKEN")
        if not token:
            raise ValueError("Telegram bot token is required")
        
        self.token = token
        self.api_url = (api_url or self.API_URL).rstrip("/")
        self.timeout = timeout
        self.parse_mode = parse_mode
        self.session = session or requests.Session()
    
    def send_message(self, recipient: str, text: str) -> None:
        """
        Deliver one message to a chat.
        
        Raises:
            DeliveryFailure: If the request fails or Telegram rejects the message
        """
        payload = {
            "chat_id": recipient,
            "text": text,
            "disable_web_page_preview": True,
        }
        if self.parse_mode:
            payload["parse_mode"] = self.parse_mode
        
        try:
            response = self.session.post(
                f"{self.api_url}/bot{self.token}/sendMessage",
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            # Never surface the URL, it embeds the bot token
            raise DeliveryFailure(recipient, type(e).__name__) from None
        
        if response.status_code != 200:
            try:
                description = response.json().get("description", "")
            except ValueError:
                description = ""
            raise DeliveryFailure(recipient, f"HTTP {response.status_code} {description}".strip())
    
    def close(self):
        self.session.close()
        logger.info("Telegram session closed")

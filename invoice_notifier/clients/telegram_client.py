"""Telegram Bot API client for notification delivery."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog

from invoice_notifier.core.config import TelegramConfig
from invoice_notifier.core.errors import DispatchError
from invoice_notifier.core.metrics import notifier_dependency_failures_total
from invoice_notifier.schemas.messages import Quiz

logger = structlog.get_logger(__name__)

MAX_MESSAGE_LENGTH = 4096
MAX_POLL_QUESTION_LENGTH = 300
MAX_POLL_OPTION_LENGTH = 100

SendFn = Callable[[int, str, dict[str, Any]], Awaitable[Any]]
QuizFn = Callable[[Quiz], Awaitable[Any]]


def _truncate(text: str, parse_mode: str | None) -> str:
    """Cut text to the message limit without leaving a dangling MarkdownV2 escape."""
    if len(text) <= MAX_MESSAGE_LENGTH:
        return text
    cut = text[:MAX_MESSAGE_LENGTH]
    if parse_mode:
        trailing = len(cut) - len(cut.rstrip("\\"))
        if trailing % 2:
            cut = cut[:-1]
    return cut


class TelegramClient:
    """Async client for the two Bot API methods the notifier uses."""

    def __init__(self, config: TelegramConfig) -> None:
        self._token = config.bot_token.get_secret_value()
        self._api_base = config.api_base.rstrip("/")
        self._timeout = config.timeout_seconds
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self._api_base}/bot{self._token}",
                timeout=httpx.Timeout(self._timeout, connect=10.0),
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send_message(
        self,
        chat_id: int | str,
        text: str,
        parse_mode: str | None = None,
    ) -> dict[str, Any]:
        """POST /sendMessage"""
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": _truncate(text, parse_mode),
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return await self._post("/sendMessage", payload)

    async def send_quiz(
        self,
        chat_id: int | str,
        question: str,
        answers: list[str] | tuple[str, ...],
        correct_index: int,
    ) -> dict[str, Any]:
        """POST /sendPoll as a quiz"""
        payload = {
            "chat_id": chat_id,
            "question": question[:MAX_POLL_QUESTION_LENGTH],
            "options": [answer[:MAX_POLL_OPTION_LENGTH] for answer in answers],
            "type": "quiz",
            "correct_option_id": correct_index,
            "is_anonymous": False,
        }
        return await self._post("/sendPoll", payload)

    def sender(self) -> SendFn:
        """Bind send_message to the pipeline's send(id, text, options) shape."""

        async def send(chat_id: int, text: str, options: dict[str, Any]) -> Any:
            return await self.send_message(chat_id, text, parse_mode=options.get("parse_mode"))

        return send

    def quiz_sender(self, chat_id: int | str) -> QuizFn:
        """Bind send_quiz to a chat for the pipeline's quiz(Quiz) shape."""

        async def quiz(payload: Quiz) -> Any:
            return await self.send_quiz(
                chat_id,
                payload.question,
                payload.answers,
                payload.correct_index,
            )

        return quiz

    async def _post(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.post(method, json=payload)
        except httpx.TimeoutException as exc:
            notifier_dependency_failures_total.labels(dependency="telegram").inc()
            raise DispatchError("Telegram request timed out", details={"method": method}) from exc
        except httpx.RequestError as exc:
            notifier_dependency_failures_total.labels(dependency="telegram").inc()
            raise DispatchError(
                f"Telegram network failure: {exc}", details={"method": method}
            ) from exc

        try:
            data = response.json() if response.content else {}
        except ValueError:
            # Proxies answer with HTML on gateway errors
            data = {}
        if not isinstance(data, dict):
            data = {}
        if response.status_code == 200 and data.get("ok", False):
            return data.get("result", {})

        notifier_dependency_failures_total.labels(dependency="telegram").inc()
        description = data.get("description", response.text or "Unknown error")
        match response.status_code:
            case 401:
                message = "Invalid or revoked Telegram bot token"
            case 403:
                message = "Bot blocked by user or lacks permissions"
            case 429:
                message = "Telegram rate limit exceeded"
            case 400:
                message = f"Telegram bad request: {description}"
            case status if status >= 500:
                message = f"Telegram server error (HTTP {status})"
            case status:
                message = f"Unexpected Telegram response (HTTP {status}): {description}"

        logger.error(
            "Telegram request failed",
            method=method,
            status_code=response.status_code,
            description=description,
        )
        raise DispatchError(message, details={"method": method, "status_code": response.status_code})

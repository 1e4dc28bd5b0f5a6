"""Account lifecycle email for the task manager service.

Sends the welcome and cancellation messages through an HTTP mail API. Delivery is fire-and-forget: a failure is
logged and never fails the request that triggered it.
"""

import asyncio
from typing import Optional, Set

import httpx

WELCOME_SUBJECT = "Thanks for joining in!"
CANCELLATION_SUBJECT = "See you next time!"


def welcome_body(name: str) -> str:
    return f"Welcome to the app {name}"


def cancellation_body(name: str) -> str:
    return f"Goodbye {name}, I hope to see you back sometime soon."


class AccountMailer:
    """Sends account emails via an HTTP mail API, or logs them when delivery is disabled.

    Example:
        ```python
        mailer = AccountMailer(api_url="https://mail.example.com/send", api_key="...", enabled=True)

        # Fire-and-forget (non-blocking inside a running event loop)
        mailer.send_welcome("alice@example.com", "Alice")

        # Or await if you need to know whether it was delivered
        delivered = await mailer.send_async("alice@example.com", "Hi", "Hello Alice")
        ```
    """

    def __init__(
        self,
        *,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        sender: str = "taskApp@allmight.today",
        enabled: bool = False,
        timeout: float = 10.0,
        logger=None,
    ):
        """Initialize the mailer.

        Args:
            api_url: Endpoint accepting a JSON message via POST
            api_key: Bearer key for the mail API
            sender: From address
            enabled: Whether to actually deliver; when False messages are only logged
            timeout: HTTP timeout in seconds
            logger: Structured logger for delivery outcomes
        """
        self._api_url = api_url
        self._api_key = api_key
        self._sender = sender
        self._enabled = enabled and bool(api_url)
        self._timeout = timeout
        self._logger = logger
        self._pending: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def send_async(self, to: str, subject: str, body: str) -> bool:
        """Deliver one message. Returns True if the mail API accepted it, False if delivery is disabled.

        Raises:
            httpx.HTTPError: If the mail API cannot be reached or rejects the message.
        """
        if not self._enabled:
            if self._logger is not None:
                self._logger.info("Mail delivery disabled; message not sent", to=to, subject=subject)
            return False

        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        payload = {"from": self._sender, "to": to, "subject": subject, "text": body}
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(self._api_url, json=payload, headers=headers)
            response.raise_for_status()
        if self._logger is not None:
            self._logger.info("Mail sent", to=to, subject=subject)
        return True

    def send(self, to: str, subject: str, body: str) -> None:
        """Fire-and-forget delivery. Failures are logged, never raised.

        Inside a running event loop the send is scheduled as a task and this returns immediately. Without one, the
        message is delivered synchronously and this blocks until the mail API answers.
        """

        async def _send():
            try:
                await self.send_async(to, subject, body)
            except Exception as e:
                if self._logger is not None:
                    self._logger.warning("Failed to send mail", to=to, subject=subject, error=str(e))

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(_send())
            return
        task = loop.create_task(_send())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def send_welcome(self, email: str, name: str) -> None:
        self.send(email, WELCOME_SUBJECT, welcome_body(name))

    def send_cancellation(self, email: str, name: str) -> None:
        self.send(email, CANCELLATION_SUBJECT, cancellation_body(name))

    async def drain(self) -> None:
        """Wait for in-flight messages. Called on shutdown."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

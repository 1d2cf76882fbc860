"""
Generation polling - waits for the paid report's PDF.

State machine:

    VERIFYING -> GENERATING -> COMPLETE
              -> COMPLETE
              -> ERROR

Entered either with a checkout session reference (fresh return from the
payment processor, verified first) or without one (direct navigation,
status check only). Polling is a bounded loop: a fixed interval between
attempts and a fixed attempt budget. Running out of attempts is a
timeout, reported as ERROR with `timed_out=True`.
"""

import asyncio
from collections.abc import Awaitable, Callable

from snaglog.api import ApiClient
from snaglog.config import POLL_INTERVAL_SECONDS, POLL_MAX_ATTEMPTS, SUPPORT_EMAIL
from snaglog.logger import get_logger
from snaglog.models import (
    BusinessRuleError,
    GenerationOutcome,
    GenerationState,
    PaymentStatus,
    RemoteError,
)

logger = get_logger(__name__)

VERIFY_FAILED = "Payment verification failed"
STATUS_FAILED = "Failed to check report status"
NOT_PAID = "Payment not completed"
TIMED_OUT = "PDF generation timed out. Please contact support."


class GenerationPoller:
    """
    Drives one report from payment return to a downloadable PDF.

    Once COMPLETE, `run()` returns immediately without touching the network.
    """

    def __init__(
        self,
        api: ApiClient,
        report_id: str,
        interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = POLL_MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_change: Callable[[GenerationOutcome], None] | None = None,
    ):
        self._api = api
        self.report_id = report_id
        self.interval = interval
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._on_change = on_change
        self._task: asyncio.Task | None = None

        self.state = GenerationState.VERIFYING
        self.pdf_url: str | None = None
        self.error_message: str | None = None
        self.timed_out = False
        self.attempts = 0

    @property
    def outcome(self) -> GenerationOutcome:
        return GenerationOutcome(
            state=self.state,
            pdf_url=self.pdf_url,
            error_message=self.error_message,
            timed_out=self.timed_out,
            attempts=self.attempts,
        )

    @property
    def support_contact(self) -> str:
        return SUPPORT_EMAIL

    # --- Entry Points ---

    async def run(self, session_id: str | None = None) -> GenerationOutcome:
        """Verifies when a session reference is given, otherwise checks status."""
        if self.state == GenerationState.COMPLETE:
            return self.outcome
        if session_id:
            return await self.verify(session_id)
        return await self.check_status()

    def start(self, session_id: str | None = None) -> asyncio.Task:
        """Runs the flow as a task. A running task is reused, not duplicated."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(session_id))
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def verify(self, session_id: str) -> GenerationOutcome:
        """
        Exchanges the checkout session for a paid/unpaid outcome.

        A document that already exists (e.g. after a reload of the return
        page) completes the flow without verifying payment again.
        """
        self._transition(GenerationState.VERIFYING)

        existing = await self._existing_document()
        if existing:
            return self._complete(existing)

        try:
            pdf_url = await self._api.verify_payment(self.report_id, session_id)
        except BusinessRuleError as e:
            logger.error("payment verification refused", report_id=self.report_id, error=e.message)
            return self._fail(e.message)
        except RemoteError as e:
            logger.error("payment verification failed", report_id=self.report_id, error=e.message)
            return self._fail(VERIFY_FAILED)

        if pdf_url:
            return self._complete(pdf_url)

        self._transition(GenerationState.GENERATING)
        return await self.poll()

    async def check_status(self) -> GenerationOutcome:
        """
        Idempotent re-entry: one status fetch decides the next state.

        Document present -> COMPLETE, paid -> GENERATING (polls),
        otherwise ERROR.
        """
        try:
            view = await self._api.get_payment_status(self.report_id)
        except RemoteError as e:
            logger.error("status check failed", report_id=self.report_id, error=e.message)
            return self._fail(STATUS_FAILED)

        if view.pdf_url:
            return self._complete(view.pdf_url)
        if view.payment_status == PaymentStatus.PAID:
            self._transition(GenerationState.GENERATING)
            return await self.poll()
        return self._fail(NOT_PAID)

    async def poll(self) -> GenerationOutcome:
        """
        Bounded retry loop: wait, fetch status, stop on the first PDF.

        Poll errors count as attempts and do not end the loop early.
        """
        for attempt in range(1, self.max_attempts + 1):
            await self._sleep(self.interval)
            self.attempts = attempt
            try:
                view = await self._api.get_payment_status(self.report_id)
            except RemoteError as e:
                logger.warning("poll failed", report_id=self.report_id, attempt=attempt, error=e.message)
                continue
            if view.pdf_url:
                return self._complete(view.pdf_url)

        logger.error("generation timed out", report_id=self.report_id, attempts=self.attempts)
        self.timed_out = True
        return self._fail(TIMED_OUT)

    # --- Internal ---

    async def _existing_document(self) -> str | None:
        try:
            view = await self._api.get_payment_status(self.report_id)
        except RemoteError:
            return None
        return view.pdf_url

    def _complete(self, pdf_url: str) -> GenerationOutcome:
        self.pdf_url = pdf_url
        self.error_message = None
        logger.info("report generated", report_id=self.report_id, attempts=self.attempts)
        return self._transition(GenerationState.COMPLETE)

    def _fail(self, message: str) -> GenerationOutcome:
        self.error_message = message
        return self._transition(GenerationState.ERROR)

    def _transition(self, state: GenerationState) -> GenerationOutcome:
        self.state = state
        outcome = self.outcome
        if self._on_change is not None:
            self._on_change(outcome)
        return outcome

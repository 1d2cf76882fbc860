"""
Checkout - hands the client off to the payment processor.

Unsaved notes are persisted first. Navigation only happens once a
checkout session URL is in hand; any failure keeps the user on review.
"""

from collections.abc import Callable

from snaglog.api import ApiClient
from snaglog.logger import get_logger
from snaglog.models import BusinessRuleError, CheckoutResult, RemoteError
from snaglog.review import ReviewStateManager

logger = get_logger(__name__)


class CheckoutOrchestrator:

    def __init__(self, api: ApiClient, review: ReviewStateManager, redirect: Callable[[str], None]):
        self._api = api
        self._review = review
        self._redirect = redirect

    async def checkout(self) -> CheckoutResult:
        """
        Saves dirty notes, creates a payment session, and redirects to it.

        There is no cancel path: once redirected, control only returns
        through the processor's success URL.
        """
        report_id = self._review.report_id

        if not self._review.can_checkout:
            return CheckoutResult(ok=False, error_message="Add at least one snag before checkout")

        if self._review.notes_dirty and not await self._review.save_notes():
            return CheckoutResult(ok=False, error_message=self._review.last_error or "Failed to save notes")

        try:
            url = await self._api.create_checkout(report_id)
        except BusinessRuleError as e:
            logger.warning("checkout refused", report_id=report_id, error=e.message)
            return CheckoutResult(ok=False, error_message=e.message)
        except RemoteError as e:
            logger.error("checkout session failed", report_id=report_id, error=e.message)
            return CheckoutResult(ok=False, error_message="Failed to start checkout")

        logger.info("redirecting to checkout", report_id=report_id)
        self._redirect(url)
        return CheckoutResult(ok=True, url=url)

"""
Analysis orchestration - fire-and-confirm triggers for AI defect analysis.

The orchestrator only knows whether a trigger was accepted. Completion
is observed by re-loading the report through the review state manager.
"""

from snaglog.api import ApiClient
from snaglog.logger import get_logger
from snaglog.models import ReanalysisInProgressError, RemoteError

logger = get_logger(__name__)


class AnalysisOrchestrator:
    """
    Tracks in-flight re-analysis requests per snag.

    Re-analysis is serialized per snag; different snags run freely.
    """

    def __init__(self, api: ApiClient):
        self._api = api
        self._pending: set[str] = set()
        self._errors: dict[str, str] = {}

    def is_pending(self, snag_id: str) -> bool:
        return snag_id in self._pending

    def error_for(self, snag_id: str) -> str | None:
        """Inline error from the last failed re-analysis of this snag."""
        return self._errors.get(snag_id)

    async def analyze_all(self, report_id: str) -> bool:
        """
        Triggers bulk analysis once after submission.

        Non-fatal: on failure snags simply stay in their pending state.
        """
        try:
            await self._api.analyze_report(report_id)
        except RemoteError as e:
            logger.warning("bulk analysis trigger failed", report_id=report_id, error=e.message)
            return False

        logger.info("bulk analysis accepted", report_id=report_id)
        return True

    async def reanalyze(self, report_id: str, snag_id: str) -> bool:
        """
        Re-triggers analysis for one snag.

        Returns False and records an inline error on failure; existing
        snag fields are left untouched.

        Raises:
            ReanalysisInProgressError: If this snag already has a request in flight.
        """
        if snag_id in self._pending:
            raise ReanalysisInProgressError(f"Re-analysis already running for snag {snag_id}")

        self._pending.add(snag_id)
        self._errors.pop(snag_id, None)
        try:
            await self._api.reanalyze_snag(report_id, snag_id)
        except RemoteError as e:
            logger.warning("re-analysis failed", report_id=report_id, snag_id=snag_id, error=e.message)
            self._errors[snag_id] = e.message
            return False
        finally:
            self._pending.discard(snag_id)

        logger.info("re-analysis accepted", report_id=report_id, snag_id=snag_id)
        return True

"""
Review state - the in-memory report, optimistic edits, and reconciliation.

The visible report is always the last confirmed server state with the
in-flight optimistic mutations layered on top, in the order they were
issued. A confirmed mutation folds into the confirmed state. A rejected
mutation is dropped and the whole report is re-loaded; there is no
point-fix rollback.

Severity counts and the checkout gate are derived from the visible snags
on every access and never stored.
"""

import itertools
from collections.abc import Callable

from pydantic import BaseModel

from snaglog.analysis import AnalysisOrchestrator
from snaglog.api import ApiClient
from snaglog.logger import get_logger
from snaglog.models import (
    AnalysisUnavailableError,
    RemoteError,
    Report,
    ReportNotLoadedError,
    ReportStatus,
    Severity,
    SeverityCounts,
    Snag,
    SnagNotFoundError,
    SnagUpdate,
)

logger = get_logger(__name__)


# --- Derived Views ---

def severity_counts(snags: list[Snag]) -> SeverityCounts:
    return SeverityCounts(
        minor=sum(1 for s in snags if s.severity == Severity.MINOR),
        moderate=sum(1 for s in snags if s.severity == Severity.MODERATE),
        major=sum(1 for s in snags if s.severity == Severity.MAJOR),
    )


def can_checkout(snags: list[Snag]) -> bool:
    """A report with zero snags cannot proceed to payment."""
    return len(snags) > 0


def snag_label(index: int) -> str:
    """Display number for the snag at zero-based `index`, e.g. '#001'."""
    return f"#{index + 1:03d}"


def confidence_percent(snag: Snag) -> int | None:
    if snag.ai_confidence is None:
        return None
    return round(snag.ai_confidence * 100)


# --- Optimistic Mutations ---

class PendingMutation(BaseModel):
    """An issued, not yet confirmed edit. `changes=None` means delete."""
    id: int
    snag_id: str
    changes: dict | None = None


def apply_mutations(report: Report, pending: list[PendingMutation]) -> Report:
    """Layers pending mutations over a confirmed report, in issue order."""
    snags = list(report.snags)
    for op in pending:
        if op.changes is None:
            snags = [s for s in snags if s.id != op.snag_id]
        else:
            snags = [
                s.model_copy(update={**op.changes, "user_edited": True}) if s.id == op.snag_id else s
                for s in snags
            ]
    return report.model_copy(update={"snags": snags})


def _ordered(snags: list[Snag]) -> list[Snag]:
    if snags and all(s.order is not None for s in snags):
        return sorted(snags, key=lambda s: s.order)
    return list(snags)


class ReviewStateManager:
    """
    Owns the review copy of one report.

    Only this class mutates the report; checkout and views read it.
    """

    def __init__(
        self,
        api: ApiClient,
        report_id: str,
        analysis: AnalysisOrchestrator | None = None,
    ):
        self._api = api
        self.report_id = report_id
        self._analysis = analysis

        self._confirmed: Report | None = None
        self._pending: list[PendingMutation] = []
        self._op_ids = itertools.count(1)

        self._notes: str | None = None
        self._saved_notes: str | None = None

        self.load_error: str | None = None
        self.last_error: str | None = None

    # --- Views ---

    @property
    def loaded(self) -> bool:
        return self._confirmed is not None

    @property
    def report(self) -> Report:
        """Confirmed state plus in-flight optimistic mutations."""
        if self._confirmed is None:
            raise ReportNotLoadedError(f"Report {self.report_id} has not been loaded")
        return apply_mutations(self._confirmed, self._pending)

    @property
    def confirmed(self) -> Report:
        if self._confirmed is None:
            raise ReportNotLoadedError(f"Report {self.report_id} has not been loaded")
        return self._confirmed

    @property
    def snags(self) -> list[Snag]:
        return self.report.snags

    @property
    def status(self) -> ReportStatus:
        return self.report.status

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def severity_counts(self) -> SeverityCounts:
        return severity_counts(self.snags)

    @property
    def can_checkout(self) -> bool:
        return can_checkout(self.snags)

    # --- Loading ---

    async def load(self) -> bool:
        """
        Replaces the confirmed state with the server's copy.

        Used for the initial load and for every reconciliation. On failure
        the previous confirmed state stays visible and `load_error` is set.
        """
        try:
            report = await self._api.get_report(self.report_id)
        except RemoteError as e:
            logger.warning("report load failed", report_id=self.report_id, error=e.message)
            self.load_error = e.message
            return False

        dirty = self.notes_dirty
        self._confirmed = report.model_copy(update={"snags": _ordered(report.snags)})
        self._saved_notes = report.notes
        if not dirty:
            self._notes = report.notes
        self.load_error = None
        return True

    # --- Snag Mutations ---

    async def update_snag(self, snag_id: str, changes: SnagUpdate | dict) -> bool:
        """
        Applies an edit immediately, then confirms it remotely.

        The snag becomes user-edited. On remote failure the optimistic
        edit is discarded and the report is re-loaded.
        An update with no fields is a no-op and never reaches the server.

        Raises:
            pydantic.ValidationError: If `changes` are not valid snag fields.
            SnagNotFoundError: If the snag is not in the visible report.
        """
        update = changes if isinstance(changes, SnagUpdate) else SnagUpdate.model_validate(changes)
        self._require_snag(snag_id)
        if not update.changes():
            return True

        op = PendingMutation(id=next(self._op_ids), snag_id=snag_id, changes=update.changes())
        self._pending.append(op)

        failure: RemoteError | None = None
        echoed: Snag | None = None
        try:
            echoed = await self._api.update_snag(self.report_id, snag_id, update)
        except RemoteError as e:
            failure = e
        finally:
            self._pending.remove(op)

        if failure is not None:
            logger.warning("snag update rejected, reloading", report_id=self.report_id, snag_id=snag_id, error=failure.message)
            self.last_error = failure.message
            await self.load()
            return False

        self._confirm_update(op, echoed)
        return True

    async def delete_snag(self, snag_id: str, confirm: Callable[[Snag], bool]) -> bool:
        """
        Removes a snag after explicit confirmation.

        Returns False when the user declines or the server rejects the
        delete; a rejection re-loads the report.

        Raises:
            SnagNotFoundError: If the snag is not in the visible report.
        """
        snag = self._require_snag(snag_id)
        if not confirm(snag):
            return False

        op = PendingMutation(id=next(self._op_ids), snag_id=snag_id)
        self._pending.append(op)

        failure: RemoteError | None = None
        try:
            await self._api.delete_snag(self.report_id, snag_id)
        except RemoteError as e:
            failure = e
        finally:
            self._pending.remove(op)

        if failure is not None:
            logger.warning("snag delete rejected, reloading", report_id=self.report_id, snag_id=snag_id, error=failure.message)
            self.last_error = failure.message
            await self.load()
            return False

        self._confirmed = apply_mutations(self._confirmed, [op])
        return True

    async def reanalyze_snag(self, snag_id: str) -> bool:
        """
        Asks for a fresh AI analysis of one snag and re-loads when accepted.

        The race with a concurrent direct edit of the same snag is not
        resolved here: whichever write the server applies last is what
        the next load shows.

        Raises:
            AnalysisUnavailableError: If no AnalysisOrchestrator was injected.
            ReanalysisInProgressError: If this snag is already being re-analyzed.
            SnagNotFoundError: If the snag is not in the visible report.
        """
        if self._analysis is None:
            raise AnalysisUnavailableError("ReviewStateManager was created without an AnalysisOrchestrator")
        self._require_snag(snag_id)

        accepted = await self._analysis.reanalyze(self.report_id, snag_id)
        if accepted:
            await self.load()
        return accepted

    # --- Notes ---

    @property
    def notes(self) -> str | None:
        return self._notes

    @property
    def notes_dirty(self) -> bool:
        return (self._notes or "") != (self._saved_notes or "")

    def set_notes(self, notes: str | None) -> None:
        self._notes = notes

    async def save_notes(self) -> bool:
        """Persists the notes buffer. A failure keeps the buffer for retry."""
        notes = self._notes
        try:
            await self._api.update_report(self.report_id, notes)
        except RemoteError as e:
            logger.warning("notes save failed", report_id=self.report_id, error=e.message)
            self.last_error = e.message
            return False

        self._saved_notes = notes
        if self._confirmed is not None:
            self._confirmed = self._confirmed.model_copy(update={"notes": notes})
        return True

    # --- Internal ---

    def _require_snag(self, snag_id: str) -> Snag:
        for snag in self.snags:
            if snag.id == snag_id:
                return snag
        raise SnagNotFoundError(f"Snag {snag_id} not found in report {self.report_id}")

    def _confirm_update(self, op: PendingMutation, echoed: Snag | None) -> None:
        """Folds a confirmed edit into the confirmed state."""
        if echoed is None:
            self._confirmed = apply_mutations(self._confirmed, [op])
            return

        snags = []
        for snag in self._confirmed.snags:
            if snag.id == op.snag_id:
                if echoed.order is None:
                    echoed = echoed.model_copy(update={"order": snag.order})
                snags.append(echoed)
            else:
                snags.append(snag)
        self._confirmed = self._confirmed.model_copy(update={"snags": snags})

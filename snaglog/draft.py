"""
Report draft - unsubmitted form state and the one-shot submission.

Validation is local and field-scoped; nothing reaches the network until
the draft is valid. A successful submission triggers bulk analysis and
ends the draft's life.
"""

from snaglog.analysis import AnalysisOrchestrator
from snaglog.api import ApiClient
from snaglog.intake import PhotoIntake
from snaglog.logger import get_logger
from snaglog.models import (
    BusinessRuleError,
    DraftAlreadySubmittedError,
    DraftValidation,
    RemoteError,
    SubmissionResult,
)

logger = get_logger(__name__)

DEFAULT_SUBMIT_ERROR = "Failed to create report"


class ReportDraft:
    """In-progress report: property metadata plus the photo intake."""

    def __init__(
        self,
        api: ApiClient,
        analysis: AnalysisOrchestrator,
        intake: PhotoIntake | None = None,
    ):
        self._api = api
        self._analysis = analysis
        self.intake = intake if intake is not None else PhotoIntake()

        self.property_address: str = ""
        self.property_type: str = ""
        self.developer_name: str = ""

        self._submitted = False
        self._submitting = False

    @property
    def submitted(self) -> bool:
        return self._submitted

    def validate(self) -> DraftValidation:
        """Address must be non-blank and at least one photo must be present."""
        if not self.property_address.strip():
            return DraftValidation(
                is_valid=False,
                field="property_address",
                error_message="Property address is required",
            )
        if len(self.intake) == 0:
            return DraftValidation(
                is_valid=False,
                field="photos",
                error_message="Please upload at least one photo",
            )
        return DraftValidation(is_valid=True)

    async def submit(self) -> SubmissionResult:
        """
        Validates, uploads metadata and photos atomically, then starts analysis.

        On any failure the draft is left intact for a manual retry.

        Raises:
            DraftAlreadySubmittedError: If this draft was already submitted
                or a submission is still in flight.
        """
        if self._submitted:
            raise DraftAlreadySubmittedError("Draft already submitted; start a new report")
        if self._submitting:
            raise DraftAlreadySubmittedError("Draft submission already in progress")

        validation = self.validate()
        if not validation.is_valid:
            return SubmissionResult(
                ok=False,
                field=validation.field,
                error_message=validation.error_message,
            )

        self._submitting = True
        try:
            report = await self._api.upload_report(
                property_address=self.property_address,
                photos=self.intake.photos,
                property_type=self.property_type or None,
                developer_name=self.developer_name or None,
            )
        except BusinessRuleError as e:
            logger.warning("report submission rejected", error=e.message)
            return SubmissionResult(ok=False, error_message=e.message)
        except RemoteError as e:
            logger.warning("report submission failed", error=e.message)
            return SubmissionResult(ok=False, error_message=DEFAULT_SUBMIT_ERROR)
        finally:
            self._submitting = False

        self._submitted = True
        logger.info("report submitted", report_id=report.id, photo_count=len(self.intake))

        analysis_started = await self._analysis.analyze_all(report.id)

        # Photos are uploaded; previews are no longer displayed
        self.intake.release_all()

        return SubmissionResult(ok=True, report_id=report.id, analysis_started=analysis_started)

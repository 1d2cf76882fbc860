"""
Domain models for the snaglog client core.

All Pydantic models in one place. Imported by intake, api, draft,
analysis, review, checkout, and generation modules. Single source of
truth for data contracts and the error taxonomy.

Wire format is camelCase; Python attributes are snake_case.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models exchanged with the remote API."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Domain Enums ---

class Severity(str, Enum):
    """
    Snag severity. Inherits str so Pydantic serializes
    to "MINOR" / "MODERATE" / "MAJOR" without extra conversion.
    """
    MINOR = "MINOR"
    MODERATE = "MODERATE"
    MAJOR = "MAJOR"


class ReportStatus(str, Enum):
    DRAFT = "DRAFT"
    ANALYZING = "ANALYZING"
    REVIEW = "REVIEW"
    PAID = "PAID"
    COMPLETE = "COMPLETE"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"


class GenerationState(str, Enum):
    """States of the post-payment document generation flow."""
    VERIFYING = "VERIFYING"
    GENERATING = "GENERATING"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


# --- Report Context ---

class Snag(WireModel):
    """A single defect finding, one per analyzed photo."""
    id: str
    photo_url: str | None = None

    room: str | None = None
    defect_type: str | None = None
    description: str | None = None
    severity: Severity | None = None
    suggested_trade: str | None = None
    remedial_action: str | None = None
    ai_confidence: float | None = Field(None, ge=0.0, le=1.0)

    user_edited: bool = False
    order: int | None = None


class SnagUpdate(WireModel):
    """
    Partial snag edit. Only explicitly set fields are sent,
    so `SnagUpdate(room=None)` clears the room while
    `SnagUpdate()` changes nothing.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    room: str | None = None
    defect_type: str | None = None
    description: str | None = None
    severity: Severity | None = None
    suggested_trade: str | None = None
    remedial_action: str | None = None

    def changes(self) -> dict:
        """Snake-case fields explicitly set on this update."""
        return self.model_dump(exclude_unset=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class Report(WireModel):
    """One inspection submission with its ordered snags."""
    id: str
    property_address: str
    property_type: str | None = None
    developer_name: str | None = None
    inspection_date: datetime | None = None
    notes: str | None = None

    status: ReportStatus = ReportStatus.ANALYZING
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    pdf_url: str | None = None

    snags: list[Snag] = []


class PaymentStatusView(WireModel):
    """Payment and document state of a report, as polled after checkout."""
    id: str | None = None
    status: ReportStatus | None = None
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    pdf_url: str | None = None


class SeverityCounts(WireModel):
    minor: int = Field(0, ge=0)
    moderate: int = Field(0, ge=0)
    major: int = Field(0, ge=0)


class ReportSummary(WireModel):
    """Dashboard row for a report."""
    id: str
    property_address: str
    property_type: str | None = None
    inspection_date: datetime | None = None
    status: ReportStatus
    payment_status: PaymentStatus
    pdf_url: str | None = None
    snag_count: int = Field(0, ge=0)
    severity_counts: SeverityCounts = SeverityCounts()
    created_at: datetime | None = None


# --- Intake Context ---

class RawPhoto(BaseModel):
    """A photo as picked from the camera or library, before intake."""
    filename: str
    data: bytes
    content_type: str | None = None

    @classmethod
    def from_path(cls, path: str | Path, content_type: str | None = None) -> "RawPhoto":
        path = Path(path)
        return cls(filename=path.name, data=path.read_bytes(), content_type=content_type)


class PhotoValidation(BaseModel):
    """Result of intake policy checks on a raw photo."""
    is_valid: bool
    error_message: str | None = None
    content_type: str | None = None
    size_bytes: int | None = Field(None, ge=0)


class IntakePhoto(BaseModel):
    """
    A photo accepted by intake: the bytes to upload plus the
    preview reference held for display until released.
    """
    filename: str
    content_type: str
    data: bytes
    preview_path: str
    converted: bool = False


# --- Result Objects ---

class DraftValidation(BaseModel):
    """Result of local draft validation. `field` names the offending input."""
    is_valid: bool
    field: str | None = None
    error_message: str | None = None


class SubmissionResult(BaseModel):
    ok: bool
    report_id: str | None = None
    field: str | None = None
    error_message: str | None = None
    analysis_started: bool = False


class CheckoutResult(BaseModel):
    ok: bool
    url: str | None = None
    error_message: str | None = None


class GenerationOutcome(BaseModel):
    state: GenerationState
    pdf_url: str | None = None
    error_message: str | None = None
    timed_out: bool = False
    attempts: int = Field(0, ge=0)


# --- Exceptions ---

class SnaglogError(Exception):
    """Base for all snaglog errors."""
    pass


class PhotoRejectedError(SnaglogError):
    """Photo failed intake policy (size or type)."""

    def __init__(self, filename: str, reason: str):
        super().__init__(f"{filename}: {reason}")
        self.filename = filename
        self.reason = reason


class RemoteError(SnaglogError):
    """Network or server failure talking to the remote API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class BusinessRuleError(RemoteError):
    """Server refused the request. Message is shown to the user verbatim."""
    pass


class AuthenticationRequiredError(BusinessRuleError):
    """No valid bearer credential. Sign-in is handled outside the core."""
    pass


class ReanalysisInProgressError(SnaglogError):
    """A re-analysis for this snag has not resolved yet."""
    pass


class DraftAlreadySubmittedError(SnaglogError):
    """The draft was already submitted and cannot be reused."""
    pass


class ReportNotLoadedError(SnaglogError):
    """Review operation attempted before the report was loaded."""
    pass


class SnagNotFoundError(SnaglogError):
    """Requested snag is not part of the loaded report."""
    pass


class AnalysisUnavailableError(SnaglogError):
    """Re-analysis requested from a review created without an analysis orchestrator."""
    pass

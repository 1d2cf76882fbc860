"""Report list for the dashboard."""

from snaglog.api import ApiClient
from snaglog.logger import get_logger
from snaglog.models import PaymentStatus, RemoteError, ReportStatus, ReportSummary

logger = get_logger(__name__)


async def list_reports(api: ApiClient) -> list[ReportSummary]:
    """All reports of the signed-in user. A failed fetch yields an empty list."""
    try:
        return await api.list_reports()
    except RemoteError as e:
        logger.warning("report list failed", error=e.message)
        return []


def status_label(report: ReportSummary) -> str:
    if report.payment_status == PaymentStatus.PAID and report.status == ReportStatus.COMPLETE:
        return "Complete"
    if report.status == ReportStatus.REVIEW:
        return "Review"
    if report.status == ReportStatus.ANALYZING:
        return "Analyzing"
    return "Draft"

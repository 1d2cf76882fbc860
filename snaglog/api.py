"""
Remote API layer - HTTP calls to the snaglog backend.

Handles report upload, retrieval, snag edits, analysis triggers, and
payment endpoints. All network interaction is isolated here; callers
only ever see parsed models or snaglog exceptions.
"""

import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from snaglog.config import API_BASE_URL, HTTP_TIMEOUT_SECONDS
from snaglog.logger import get_logger
from snaglog.models import (
    AuthenticationRequiredError,
    BusinessRuleError,
    IntakePhoto,
    PaymentStatusView,
    RemoteError,
    Report,
    ReportSummary,
    Snag,
    SnagUpdate,
)

logger = get_logger(__name__)

TokenSupplier = Callable[[], Awaitable[str | None] | str | None]


class BearerAuth(httpx.Auth):
    """
    Attaches the bearer credential from the identity collaborator.

    The supplier is asked before every request so refreshed tokens are
    picked up; no header is sent when it returns None.
    """

    def __init__(self, token_supplier: TokenSupplier):
        self._token_supplier = token_supplier

    async def async_auth_flow(self, request: httpx.Request):
        token = self._token_supplier()
        if inspect.isawaitable(token):
            token = await token
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        yield request


class ApiClient:
    """Async client for the report, analysis, and payment endpoints."""

    def __init__(
        self,
        token_supplier: TokenSupplier,
        base_url: str = API_BASE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            auth=BearerAuth(token_supplier),
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- Reports ---

    async def list_reports(self) -> list[ReportSummary]:
        data = await self._request("GET", "/api/report")
        return _parse(_ReportList, data, "reports")

    async def upload_report(
        self,
        property_address: str,
        photos: list[IntakePhoto],
        property_type: str | None = None,
        developer_name: str | None = None,
    ) -> Report:
        """
        Creates a report from metadata and photos in one multipart request.

        Optional fields are only sent when non-empty.
        """
        form = {"propertyAddress": property_address}
        if property_type:
            form["propertyType"] = property_type
        if developer_name:
            form["developerName"] = developer_name

        files = [
            ("photos", (photo.filename, photo.data, photo.content_type))
            for photo in photos
        ]

        data = await self._request("POST", "/api/upload", data=form, files=files)
        return _parse(Report, data, "report")

    async def get_report(self, report_id: str) -> Report:
        data = await self._request("GET", f"/api/report/{report_id}")
        return _parse(Report, data, "report")

    async def update_report(self, report_id: str, notes: str | None) -> None:
        await self._request("PATCH", f"/api/report/{report_id}", json={"notes": notes})

    # --- Snags ---

    async def update_snag(self, report_id: str, snag_id: str, update: SnagUpdate) -> Snag | None:
        """
        Sends a partial snag edit. The server marks the snag user-edited.

        Returns the updated snag when the server echoes it back.
        """
        data = await self._request(
            "PATCH",
            f"/api/report/{report_id}/snag/{snag_id}",
            json=update.to_wire(),
        )
        if data.get("snag"):
            return _parse(Snag, data, "snag")
        return None

    async def delete_snag(self, report_id: str, snag_id: str) -> None:
        await self._request("DELETE", f"/api/report/{report_id}/snag/{snag_id}")

    # --- Analysis ---

    async def analyze_report(self, report_id: str) -> None:
        await self._request("POST", f"/api/analyze/{report_id}")

    async def reanalyze_snag(self, report_id: str, snag_id: str) -> None:
        await self._request("POST", f"/api/analyze/{report_id}/snag/{snag_id}")

    # --- Payment ---

    async def create_checkout(self, report_id: str) -> str:
        data = await self._request("POST", f"/api/payment/checkout/{report_id}")
        url = data.get("url")
        if not url:
            raise RemoteError(f"Checkout for report {report_id} returned no redirect URL")
        return url

    async def verify_payment(self, report_id: str, session_id: str) -> str | None:
        """Exchanges a checkout session for a confirmed outcome. Returns the PDF URL if ready."""
        data = await self._request(
            "POST",
            f"/api/payment/verify/{report_id}",
            json={"sessionId": session_id},
        )
        return data.get("pdfUrl")

    async def get_payment_status(self, report_id: str) -> PaymentStatusView:
        data = await self._request("GET", f"/api/payment/status/{report_id}")
        return _parse(PaymentStatusView, data, "report")

    # --- Internal ---

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        """
        Performs one request and returns the decoded JSON body.

        Raises:
            AuthenticationRequiredError: On 401.
            BusinessRuleError: On any other 4xx, carrying the server's message.
            RemoteError: On transport failure, 5xx, or an undecodable body.
        """
        start = time.perf_counter()
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("api request failed", method=method, path=path, error=str(e))
            raise RemoteError(f"{method} {path} failed: {e}") from e

        logger.debug(
            "api request",
            method=method,
            path=path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )

        if response.is_error:
            message = _error_message(response, f"{method} {path} failed with {response.status_code}")
            if response.status_code == 401:
                raise AuthenticationRequiredError(message, response.status_code)
            if response.is_client_error:
                raise BusinessRuleError(message, response.status_code)
            raise RemoteError(message, response.status_code)

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteError(f"{method} {path} returned invalid JSON", response.status_code) from e
        return data if isinstance(data, dict) else {}


def _error_message(response: httpx.Response, default: str) -> str:
    """Server error text from a `{"error": ...}` body, or the default."""
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict) and isinstance(body.get("error"), str) and body["error"]:
        return body["error"]
    return default


_ReportList = TypeAdapter(list[ReportSummary])


def _parse(model: Any, data: dict, key: str) -> Any:
    """Validates the entity under `key` in a response envelope."""
    if key not in data:
        raise RemoteError(f"Response is missing '{key}'")
    validate = model.validate_python if isinstance(model, TypeAdapter) else model.model_validate
    try:
        return validate(data[key])
    except ValidationError as e:
        raise RemoteError(f"Malformed '{key}' in response: {e}") from e

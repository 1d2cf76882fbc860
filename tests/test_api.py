"""
Unit tests for api module (transport mocked with httpx.MockTransport)
"""
import json

import httpx
import pytest

from snaglog.api import ApiClient
from snaglog.models import (
    AuthenticationRequiredError,
    BusinessRuleError,
    IntakePhoto,
    PaymentStatus,
    RemoteError,
    Severity,
    SnagUpdate,
)


# ============================================================================
# HELPERS
# ============================================================================

REPORT_JSON = {
    "id": "rep-1",
    "propertyAddress": "12 Orchard Lane, Leeds",
    "propertyType": "Semi-detached",
    "developerName": "Barratt",
    "inspectionDate": "2026-10-01T09:00:00Z",
    "status": "REVIEW",
    "paymentStatus": "UNPAID",
    "pdfUrl": None,
    "snags": [
        {
            "id": "snag-1",
            "photoUrl": "https://cdn.test/1.jpg",
            "room": "Kitchen",
            "defectType": "Cracked tile",
            "description": "Hairline crack",
            "severity": "MINOR",
            "suggestedTrade": "Tiler",
            "remedialAction": "Replace tile",
            "aiConfidence": 0.91,
            "userEdited": False,
        }
    ],
}


def make_client(handler, token="tok-123") -> ApiClient:
    return ApiClient(
        token_supplier=lambda: token,
        base_url="http://api.test",
        transport=httpx.MockTransport(handler),
    )


def json_response(status_code=200, body=None) -> httpx.Response:
    return httpx.Response(status_code, json=body if body is not None else {})


# ============================================================================
# AUTH TESTS
# ============================================================================

class TestBearerAuth:

    @pytest.mark.asyncio
    async def test_bearer_header_attached(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return json_response(body={"reports": []})

        async with make_client(handler) as api:
            await api.list_reports()
        assert seen["auth"] == "Bearer tok-123"

    @pytest.mark.asyncio
    async def test_async_token_supplier(self):
        seen = {}

        async def supplier():
            return "async-tok"

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return json_response(body={"reports": []})

        async with ApiClient(supplier, base_url="http://api.test", transport=httpx.MockTransport(handler)) as api:
            await api.list_reports()
        assert seen["auth"] == "Bearer async-tok"

    @pytest.mark.asyncio
    async def test_no_header_without_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return json_response(body={"reports": []})

        async with make_client(handler, token=None) as api:
            await api.list_reports()
        assert seen["auth"] is None


# ============================================================================
# ENDPOINT TESTS
# ============================================================================

class TestEndpoints:

    @pytest.mark.asyncio
    async def test_get_report_parses_camel_case(self):
        def handler(request):
            assert request.method == "GET"
            assert request.url.path == "/api/report/rep-1"
            return json_response(body={"report": REPORT_JSON})

        async with make_client(handler) as api:
            report = await api.get_report("rep-1")

        assert report.property_address == "12 Orchard Lane, Leeds"
        assert report.payment_status == PaymentStatus.UNPAID
        snag = report.snags[0]
        assert snag.severity == Severity.MINOR
        assert snag.suggested_trade == "Tiler"
        assert snag.ai_confidence == 0.91
        assert snag.user_edited is False

    @pytest.mark.asyncio
    async def test_upload_is_multipart(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["type"] = request.headers["Content-Type"]
            seen["body"] = request.content
            return json_response(body={"report": {**REPORT_JSON, "snags": []}})

        photo = IntakePhoto(filename="kitchen.jpg", content_type="image/jpeg", data=b"JPEGDATA", preview_path="/tmp/p.jpg")
        async with make_client(handler) as api:
            report = await api.upload_report("12 Orchard Lane, Leeds", [photo], developer_name="Barratt")

        assert report.id == "rep-1"
        assert seen["path"] == "/api/upload"
        assert seen["type"].startswith("multipart/form-data")
        assert b'name="propertyAddress"' in seen["body"]
        assert b'name="developerName"' in seen["body"]
        assert b'name="propertyType"' not in seen["body"]
        assert b'filename="kitchen.jpg"' in seen["body"]
        assert b"JPEGDATA" in seen["body"]

    @pytest.mark.asyncio
    async def test_update_snag_sends_only_set_fields(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["json"] = json.loads(request.content)
            return json_response(body={"snag": {**REPORT_JSON["snags"][0], "severity": "MAJOR", "userEdited": True}})

        async with make_client(handler) as api:
            snag = await api.update_snag("rep-1", "snag-1", SnagUpdate(severity=Severity.MAJOR, defect_type="Crack"))

        assert seen["method"] == "PATCH"
        assert seen["path"] == "/api/report/rep-1/snag/snag-1"
        assert seen["json"] == {"severity": "MAJOR", "defectType": "Crack"}
        assert snag.severity == Severity.MAJOR
        assert snag.user_edited is True

    @pytest.mark.asyncio
    async def test_update_report_sends_notes(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["json"] = json.loads(request.content)
            return json_response(body={"report": {**REPORT_JSON, "notes": "Loft hatch"}})

        async with make_client(handler) as api:
            assert await api.update_report("rep-1", "Loft hatch") is None

        assert seen == {"method": "PATCH", "json": {"notes": "Loft hatch"}}

    @pytest.mark.asyncio
    async def test_update_snag_without_echo(self):
        async with make_client(lambda request: json_response(body={"success": True})) as api:
            assert await api.update_snag("rep-1", "snag-1", SnagUpdate(room="WC")) is None

    @pytest.mark.asyncio
    async def test_delete_snag_empty_body(self):
        def handler(request):
            assert request.method == "DELETE"
            return httpx.Response(204)

        async with make_client(handler) as api:
            assert await api.delete_snag("rep-1", "snag-1") is None

    @pytest.mark.asyncio
    async def test_verify_payment_sends_session(self):
        seen = {}

        def handler(request):
            seen["json"] = json.loads(request.content)
            return json_response(body={"pdfUrl": "https://cdn.test/r.pdf"})

        async with make_client(handler) as api:
            pdf_url = await api.verify_payment("rep-1", "cs_test_1")

        assert seen["json"] == {"sessionId": "cs_test_1"}
        assert pdf_url == "https://cdn.test/r.pdf"

    @pytest.mark.asyncio
    async def test_payment_status(self):
        body = {"report": {"id": "rep-1", "paymentStatus": "PAID", "pdfUrl": None}}
        async with make_client(lambda request: json_response(body=body)) as api:
            view = await api.get_payment_status("rep-1")
        assert view.payment_status == PaymentStatus.PAID
        assert view.pdf_url is None

    @pytest.mark.asyncio
    async def test_checkout_without_url(self):
        async with make_client(lambda request: json_response(body={})) as api:
            with pytest.raises(RemoteError):
                await api.create_checkout("rep-1")


# ============================================================================
# ERROR MAPPING TESTS
# ============================================================================

class TestErrorMapping:

    @pytest.mark.asyncio
    async def test_client_error_is_business_rule(self):
        handler = lambda request: json_response(400, {"error": "Report has no snags"})
        async with make_client(handler) as api:
            with pytest.raises(BusinessRuleError) as exc_info:
                await api.create_checkout("rep-1")
        assert exc_info.value.message == "Report has no snags"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        async with make_client(lambda request: json_response(401, {"error": "Unauthorized"})) as api:
            with pytest.raises(AuthenticationRequiredError):
                await api.get_report("rep-1")

    @pytest.mark.asyncio
    async def test_server_error_is_not_business_rule(self):
        async with make_client(lambda request: httpx.Response(502, text="Bad gateway")) as api:
            with pytest.raises(RemoteError) as exc_info:
                await api.get_report("rep-1")
        assert not isinstance(exc_info.value, BusinessRuleError)
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as api:
            with pytest.raises(RemoteError) as exc_info:
                await api.analyze_report("rep-1")
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_malformed_report(self):
        body = {"report": {"id": "rep-1", "propertyAddress": "x", "snags": [{"id": "s", "severity": "CATASTROPHIC"}]}}
        async with make_client(lambda request: json_response(body=body)) as api:
            with pytest.raises(RemoteError):
                await api.get_report("rep-1")

    @pytest.mark.asyncio
    async def test_missing_envelope(self):
        async with make_client(lambda request: json_response(body={"data": {}})) as api:
            with pytest.raises(RemoteError):
                await api.get_report("rep-1")

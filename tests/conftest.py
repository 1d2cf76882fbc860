# Shared fixtures for the snaglog test suite

import io
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from PIL import Image

# Add repository root to Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

from snaglog.api import ApiClient
from snaglog.models import RawPhoto, Report, Severity, Snag


def make_jpeg_bytes(size=(600, 600), color="red") -> bytes:
    img = Image.new("RGB", size, color=color)
    buf = io.BytesIO()
    img.save(buf, format="JPEG")
    return buf.getvalue()


def make_snag(snag_id="snag-1", **fields) -> Snag:
    return Snag(id=snag_id, photo_url=f"https://cdn.test/{snag_id}.jpg", **fields)


def make_report(snags=None, report_id="rep-1", **fields) -> Report:
    fields.setdefault("property_address", "12 Orchard Lane, Leeds")
    return Report(id=report_id, snags=snags if snags is not None else [], **fields)


@pytest.fixture
def jpeg_photo():
    return RawPhoto(filename="kitchen.jpg", data=make_jpeg_bytes(), content_type="image/jpeg")


@pytest.fixture
def mock_api():
    """ApiClient double; every endpoint method is an AsyncMock."""
    return MagicMock(spec=ApiClient)


@pytest.fixture
def three_snag_report():
    return make_report([
        make_snag("snag-1", severity=Severity.MINOR, room="Kitchen", order=0),
        make_snag("snag-2", severity=Severity.MAJOR, room="Hallway", order=1),
        make_snag("snag-3", severity=Severity.MODERATE, room="WC", order=2),
    ])

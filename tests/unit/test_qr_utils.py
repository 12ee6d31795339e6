import pytest

from gymdesk.utils import qr_utils
from gymdesk.utils.errors import ValidationError


def test_build_payload():
    assert qr_utils.build_member_qr_payload(42, 1700000000000) == "MEMBER-42-1700000000000"


def test_build_payload_defaults_to_current_millis():
    payload = qr_utils.build_member_qr_payload(7)
    prefix, user_id, stamp = payload.split("-")
    assert prefix == "MEMBER"
    assert user_id == "7"
    assert len(stamp) >= 13


def test_parse_valid_payload():
    assert qr_utils.parse_qr_payload("MEMBER-42-1700000000000") == 42


@pytest.mark.parametrize("payload", [
    "",
    None,
    "MEMBER-42",
    "USER-42-1700000000000",
    "MEMBER-abc-1700000000000",
    "MEMBER-42-notatime",
    "member-42-1700000000000",
    "MEMBER-42-1700000000000-extra",
])
def test_parse_rejects_malformed_payloads(payload):
    with pytest.raises(ValidationError):
        qr_utils.parse_qr_payload(payload)


def test_generate_qr_png_returns_png_bytes():
    png = qr_utils.generate_qr_png("MEMBER-1-1700000000000")
    assert png[:8] == b"\x89PNG\r\n\x1a\n"


def test_png_data_url():
    assert qr_utils.png_data_url(b"abc") == "data:image/png;base64,YWJj"


def test_save_member_qr_writes_file(tmp_path):
    path, png = qr_utils.save_member_qr(3, "MEMBER-9-1", str(tmp_path / "qr"))
    assert path.endswith("member_3.png")
    with open(path, "rb") as fh:
        assert fh.read() == png

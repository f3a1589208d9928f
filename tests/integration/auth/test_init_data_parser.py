import json
from urllib.parse import urlencode

import pytest

from src.core.exceptions.base import ParseErrorKind
from src.core.service.auth.init_data_parser import InitDataParseError, InitDataParser


@pytest.fixture
def parser():
    return InitDataParser()


def _raw(**fields):
    return urlencode(fields)


def test_parse_complete_payload(parser, telegram_user):
    raw = _raw(query_id="AAH", user=json.dumps(telegram_user), auth_date="1736942400", hash="ab12")

    parsed = parser.parse(raw)

    assert parsed.user.id == "279058397"
    assert parsed.user.username == "vdkfrost"
    assert parsed.auth_date == 1736942400
    assert parsed.hash == "ab12"
    assert parsed.query_id == "AAH"
    assert parsed.raw == raw
    assert parsed.fields["auth_date"] == "1736942400"


def test_string_user_id_kept_verbatim(parser):
    """Large ids stay strings so no precision is lost"""
    raw = _raw(user=json.dumps({"id": "98765432109876543210"}), auth_date="1", hash="x")

    assert parser.parse(raw).user.id == "98765432109876543210"


@pytest.mark.parametrize("raw,kind", [
    ("", ParseErrorKind.MALFORMED_PAYLOAD),
    ("   ", ParseErrorKind.MALFORMED_PAYLOAD),
    ("no-equals-sign", ParseErrorKind.MALFORMED_PAYLOAD),
    ("auth_date=1&hash=x", ParseErrorKind.MISSING_USER),
    ("user=&auth_date=1&hash=x", ParseErrorKind.MISSING_USER),
    ("user=%7Bnot-json&auth_date=1&hash=x", ParseErrorKind.MALFORMED_USER),
    ("user=%5B1%2C2%5D&auth_date=1&hash=x", ParseErrorKind.MALFORMED_USER),
    ("user=%7B%22username%22%3A%22a%22%7D&auth_date=1&hash=x", ParseErrorKind.MALFORMED_USER),
    ("user=%7B%22id%22%3Atrue%7D&auth_date=1&hash=x", ParseErrorKind.MALFORMED_USER),
    ("user=%7B%22id%22%3A1%7D&hash=x", ParseErrorKind.MISSING_AUTH_PARAMS),
    ("user=%7B%22id%22%3A1%7D&auth_date=1", ParseErrorKind.MISSING_AUTH_PARAMS),
    ("user=%7B%22id%22%3A1%7D&auth_date=yesterday&hash=x", ParseErrorKind.MISSING_AUTH_PARAMS),
])
def test_parse_failures(parser, raw, kind):
    with pytest.raises(InitDataParseError) as exc_info:
        parser.parse(raw)

    assert exc_info.value.kind == kind


def test_duplicate_fields_rejected(parser):
    raw = "user=%7B%22id%22%3A1%7D&user=%7B%22id%22%3A2%7D&auth_date=1&hash=x"

    with pytest.raises(InitDataParseError) as exc_info:
        parser.parse(raw)

    assert exc_info.value.kind == ParseErrorKind.MALFORMED_PAYLOAD

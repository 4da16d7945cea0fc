"""Tests for the XML envelope codec"""
from datetime import datetime

import pytest

from ediplug.envelope import (
    COMMAND_GET,
    COMMAND_SETUP,
    ROOT_ID,
    decode,
    encode,
    parse_number,
    parse_timestamp,
)
from ediplug.errors import MalformedResponse


def test_encode_scalar_field():
    """A scalar payload becomes a single dotted element below CMD"""
    body = encode(ROOT_ID, COMMAND_SETUP, {"Device.System.Power.State": "ON"})

    assert body == (
        b'<?xml version="1.0" encoding="UTF-8"?>\n'
        b'<SMARTPLUG id="edimax"><CMD id="setup">'
        b'<Device.System.Power.State>ON</Device.System.Power.State>'
        b'</CMD></SMARTPLUG>'
    )


def test_encode_empty_fields_are_not_self_closing():
    body = encode(ROOT_ID, COMMAND_GET, {"Device.System.Power.State": ""})

    assert b'<Device.System.Power.State></Device.System.Power.State>' in body


def test_encode_block_payload():
    """A nested mapping becomes a block element holding the fields in order"""
    body = encode(ROOT_ID, COMMAND_GET, {
        "NOW_POWER": {"A.B": "", "C.D": ""},
        "E.F": "",
    })

    assert b'<CMD id="get"><NOW_POWER><A.B></A.B><C.D></C.D></NOW_POWER><E.F></E.F></CMD>' in body


def test_encode_escapes_values():
    body = encode(ROOT_ID, COMMAND_SETUP, {"Device.System.Name": "Tom & Jerry <3"})

    assert b"Tom &amp; Jerry &lt;3" in body
    assert decode(body).text("Device.System.Name") == "Tom & Jerry <3"


@pytest.mark.parametrize("state", ["ON", "OFF"])
def test_state_token_survives_encode_decode(state):
    envelope = decode(encode(ROOT_ID, COMMAND_SETUP, {"Device.System.Power.State": state}))

    assert envelope.root_id == "edimax"
    assert envelope.command_id == "setup"
    assert envelope.text("Device.System.Power.State") == state


def test_decode_distinguishes_absent_from_empty():
    envelope = decode(
        b'<SMARTPLUG id="edimax"><CMD id="get"><NOW_POWER>'
        b'<Device.System.Power.NowCurrent></Device.System.Power.NowCurrent>'
        b'</NOW_POWER></CMD></SMARTPLUG>'
    )

    assert envelope.text("NOW_POWER", "Device.System.Power.NowCurrent") == ""
    assert envelope.text("NOW_POWER", "Device.System.Power.NowPower") is None
    assert envelope.text("SYSTEM_INFO", "Run.Model") is None


def test_decode_without_command_block():
    envelope = decode(b'<SMARTPLUG id="edimax"></SMARTPLUG>')

    assert envelope.command is None
    assert envelope.command_id is None
    assert envelope.text("Device.System.Power.State") is None


def test_decode_transcodes_declared_charset():
    """Devices may declare non UTF-8 charsets; text must come out decoded"""
    body = (
        '<?xml version="1.0" encoding="ISO-8859-1"?>'
        '<SMARTPLUG id="edimax"><CMD id="get"><SYSTEM_INFO>'
        '<Device.System.Name>Küche</Device.System.Name>'
        '</SYSTEM_INFO></CMD></SMARTPLUG>'
    ).encode("latin-1")

    assert decode(body).text("SYSTEM_INFO", "Device.System.Name") == "Küche"


def test_decode_accepts_non_standard_utf8_label():
    body = (
        '<?xml version="1.0" encoding="UTF8"?>'
        '<SMARTPLUG id="edimax"><CMD id="get">'
        '<Device.System.Name>Büro</Device.System.Name>'
        '</CMD></SMARTPLUG>'
    ).encode("utf-8")

    assert decode(body).text("Device.System.Name") == "Büro"


def test_decode_multibyte_charset():
    body = (
        '<?xml version="1.0" encoding="GB2312"?>'
        '<SMARTPLUG id="edimax"><CMD id="get">'
        '<Device.System.Name>厨房</Device.System.Name>'
        '</CMD></SMARTPLUG>'
    ).encode("gb2312")

    assert decode(body).text("Device.System.Name") == "厨房"


def test_decode_utf8_bom():
    body = b'\xef\xbb\xbf<SMARTPLUG id="edimax"><CMD id="setup">OK</CMD></SMARTPLUG>'

    assert decode(body).text() == "OK"


def test_decode_unknown_charset_fails():
    body = b'<?xml version="1.0" encoding="x-made-up"?><SMARTPLUG id="edimax"/>'

    with pytest.raises(MalformedResponse, match="charset"):
        decode(body)


@pytest.mark.parametrize("label", ["base64", "hex", "rot13", "zip"])
def test_decode_non_text_codec_label_fails(label):
    body = f'<?xml version="1.0" encoding="{label}"?><SMARTPLUG id="edimax"><CMD id="get"></CMD></SMARTPLUG>'.encode()

    with pytest.raises(MalformedResponse, match="charset"):
        decode(body)


@pytest.mark.parametrize("body", [
    b"",
    b"   \r\n",
    b'<SMARTPLUG id="edimax"><CMD id="get">',
    b"<html><body>401 Unauthorized</body></html>",
    b"not xml at all",
])
def test_decode_malformed_documents_fail(body):
    with pytest.raises(MalformedResponse):
        decode(body)


@pytest.mark.parametrize("text, expected", [
    (None, 0.0),
    ("", 0.0),
    ("  ", 0.0),
    ("0.2910", 0.291),
    (" 53.65 ", 53.65),
    ("-1.5", -1.5),
    ("1e3", 1000.0),
])
def test_parse_number(text, expected):
    assert parse_number(text, "field") == expected


@pytest.mark.parametrize("text", ["abc", "1,5", "1e400", "nan", "inf", "0x10", "1_000", "1.5.2", "e5"])
def test_parse_number_rejects_garbage(text):
    with pytest.raises(MalformedResponse, match="field"):
        parse_number(text, "field")


def test_parse_timestamp():
    assert parse_timestamp("20240315184501") == datetime(2024, 3, 15, 18, 45, 1)


def test_parse_timestamp_is_injective():
    """Changing any single digit of a valid timestamp changes the instant"""
    base = "20240315184501"
    stamps = {base}
    for position in range(len(base)):
        for digit in "0123456789":
            candidate = base[:position] + digit + base[position + 1:]
            try:
                parse_timestamp(candidate)
            except MalformedResponse:
                continue
            stamps.add(candidate)

    parsed = {parse_timestamp(s) for s in stamps}

    assert len(stamps) > 50
    assert len(parsed) == len(stamps)


@pytest.mark.parametrize("text", [
    None,
    "",
    "2024031518450",        # 13 digits
    "202403151845011",      # 15 digits
    "2024-03-15 18:45:01",
    "2024031518450a",
    " 20240315184501",
    "20241315184501",       # month 13
    "20240230120000",       # 30th of February
    "20240315250000",       # hour 25
    "２０２４０３１５１８４５０１",  # full width digits
])
def test_parse_timestamp_rejects_other_formats(text):
    with pytest.raises(MalformedResponse):
        parse_timestamp(text)

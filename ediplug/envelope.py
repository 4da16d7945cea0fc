"""
Envelope codec for the EdiPlug XML protocol.

Every request and response looks like::

    <?xml version="1.0" encoding="UTF-8"?>
    <SMARTPLUG id="edimax">
      <CMD id="get">
        <Device.System.Power.State>ON</Device.System.Power.State>
      </CMD>
    </SMARTPLUG>

The children of CMD vary per command: either flat dotted fields or a
named block (NOW_POWER, SYSTEM_INFO) holding dotted fields.
"""
import codecs
import math
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional, Union

from ediplug.errors import MalformedResponse

XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>\n'
ROOT_TAG = "SMARTPLUG"
ROOT_ID = "edimax"
COMMAND_TAG = "CMD"
COMMAND_GET = "get"
COMMAND_SETUP = "setup"

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

# A payload value is either a scalar field or a block of scalar fields
Payload = Mapping[str, Union[str, Mapping[str, str]]]

_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")
_DECLARED_ENCODING = re.compile(
    rb"^\s*<\?xml[^>]*?encoding\s*=\s*[\"']([A-Za-z0-9._:\-]+)[\"']"
)
_TIMESTAMP = re.compile(r"[0-9]{14}")
_DECIMAL = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")


@dataclass
class Envelope:
    """
    A decoded protocol document.

    Attributes:
        root_id: The id attribute of the SMARTPLUG root.
        command_id: The id attribute of CMD ("get", "setup"), None if absent.
        command: The CMD element, None if the device sent no command block.
    """
    root_id: Optional[str]
    command_id: Optional[str]
    command: Optional[ET.Element]

    def text(self, *path: str) -> Optional[str]:
        """
        Return the text of the element at path below CMD.

        Returns None when any element along the path is absent, and ""
        when the element is present but empty.
        """
        node = self.command
        for tag in path:
            if node is None:
                return None
            node = next((child for child in node if child.tag == tag), None)
        if node is None:
            return None
        return node.text or ""


def encode(root_id: str, command_id: str, payload: Payload) -> bytes:
    """
    Build a request document.

    Args:
        root_id: id attribute of the SMARTPLUG root (always "edimax" on the wire)
        command_id: "get" for reads, "setup" for writes
        payload: Ordered fields below CMD; a nested mapping becomes a block element

    Returns:
        UTF-8 encoded document including the XML declaration.
    """
    root = ET.Element(ROOT_TAG, {"id": root_id})
    command = ET.SubElement(root, COMMAND_TAG, {"id": command_id})

    for name, value in payload.items():
        element = ET.SubElement(command, name)
        if isinstance(value, Mapping):
            for field_name, field_value in value.items():
                ET.SubElement(element, field_name).text = field_value
        else:
            element.text = value

    body = ET.tostring(root, encoding="unicode", short_empty_elements=False)
    return (XML_HEADER + body).encode("utf-8")


def _transcode(data: bytes) -> str:
    """Decode raw bytes using the charset the document declares."""
    if data.startswith(codecs.BOM_UTF8):
        label = "utf-8"
        data = data[len(codecs.BOM_UTF8):]
    elif data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        label = "utf-16"
    else:
        match = _DECLARED_ENCODING.match(data)
        label = match.group(1).decode("ascii") if match else "utf-8"

    try:
        codec = codecs.lookup(label)
    except LookupError:
        raise MalformedResponse(f"Unsupported charset label {label!r}") from None

    try:
        text = data.decode(codec.name)
    except LookupError:
        # base64, rot13 and friends are codecs but not charsets
        raise MalformedResponse(f"Unsupported charset label {label!r}") from None
    except UnicodeError as e:
        raise MalformedResponse(f"Response is not valid {label}: {e}") from e

    # The text is already decoded; expat must not try to apply the label again
    return _DECLARATION.sub("", text, count=1)


def decode(data: bytes) -> Envelope:
    """
    Parse a response document.

    Raises:
        MalformedResponse: If the document is empty, truncated, not XML,
            in an unknown charset, or not rooted at SMARTPLUG.
    """
    if not data or not data.strip():
        raise MalformedResponse("Empty response body")

    text = _transcode(data)

    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise MalformedResponse(f"Invalid XML: {e}") from e

    if root.tag != ROOT_TAG:
        raise MalformedResponse(f"Unexpected root element <{root.tag}>")

    command = root.find(COMMAND_TAG)
    return Envelope(
        root_id=root.get("id"),
        command_id=command.get("id") if command is not None else None,
        command=command,
    )


def parse_number(text: Optional[str], field: str) -> float:
    """
    Parse an optional numeric field.

    Absent or empty fields are 0.0. Present text that is not a finite
    decimal number raises MalformedResponse.
    """
    if text is None or not text.strip():
        return 0.0

    # Plain decimal notation only; float() would also take "1_000" and "nan"
    if not _DECIMAL.fullmatch(text.strip()):
        raise MalformedResponse(f"{field}: not a number: {text!r}")

    value = float(text.strip())

    if not math.isfinite(value):
        raise MalformedResponse(f"{field}: out of range: {text!r}")
    return value


def parse_timestamp(text: Optional[str], field: str = "timestamp") -> datetime:
    """
    Parse a YYYYMMDDhhmmss device timestamp into a naive datetime.

    The device clock has no timezone; the result is device local time.
    There is no fallback format: anything else raises MalformedResponse.
    """
    if text is None or not _TIMESTAMP.fullmatch(text):
        raise MalformedResponse(f"{field}: expected 14 digit timestamp, got {text!r}")

    try:
        return datetime.strptime(text, TIMESTAMP_FORMAT)
    except ValueError as e:
        raise MalformedResponse(f"{field}: invalid timestamp {text!r}: {e}") from e

"""Status notification decoding.

Every notification on the status characteristic starts with a big-endian
16-bit status code. Anything after the code is echoed back as hex so that
operators can see what the firmware attached to it.
"""

from __future__ import annotations

from netcfgctl.core.errors import MalformedNotificationError
from netcfgctl.core.model import StatusClass, StatusRecord

PROVISION_SUCCESS = 0x0104
PROVISION_FAILURE = 0x010A
UNKNOWN_NAME = "UNKNOWN"

STATUS_CODES: dict[int, tuple[str, StatusClass]] = {
    0x0100: ("READY", StatusClass.INFORMATIONAL),
    0x0101: ("START", StatusClass.INFORMATIONAL),
    0x0102: ("INPROCESS", StatusClass.INFORMATIONAL),
    0x0103: ("CERT_READY", StatusClass.INFORMATIONAL),
    PROVISION_SUCCESS: ("PROVISION_SUCCESS", StatusClass.SUCCESS),
    0x0105: ("REBOOTING", StatusClass.INFORMATIONAL),
    0x0106: ("IDLE", StatusClass.INFORMATIONAL),
    0x0107: ("SSID", StatusClass.INFORMATIONAL),
    0x0108: ("PWD", StatusClass.INFORMATIONAL),
    0x0109: ("CERT_ERR", StatusClass.INFORMATIONAL),
    PROVISION_FAILURE: ("PROVISION_FAILURE", StatusClass.FAILURE),
}


def status_name(code: int) -> str:
    entry = STATUS_CODES.get(code)
    return entry[0] if entry else UNKNOWN_NAME


def classify(code: int) -> StatusClass:
    # Codes outside the table never terminate a step.
    entry = STATUS_CODES.get(code)
    return entry[1] if entry else StatusClass.INFORMATIONAL


def decode(data: bytes | bytearray) -> StatusRecord:
    if len(data) < 2:
        raise MalformedNotificationError(
            f"Status notification needs at least 2 bytes, got {len(data)}"
        )
    code = int.from_bytes(data[:2], "big")
    trailer = bytes(data[2:])
    return StatusRecord(
        code=code,
        symbolic_name=status_name(code),
        raw_hex=trailer.hex() if trailer else None,
    )

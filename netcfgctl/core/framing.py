"""Command framing for the provisioning write characteristic."""

from __future__ import annotations

from netcfgctl.core.errors import InvalidArgumentError
from netcfgctl.core.model import Command, DeviceProfile, FramingSpec

# prefix id, opcode, total data length
_FIRST_PACKET_PREAMBLE_BYTES = 6


def split_payload(data: bytes, framing: FramingSpec) -> list[bytes]:
    if not data:
        return [b""]
    if len(data) <= framing.first_packet_data_max:
        return [data]

    chunks = [data[: framing.first_packet_data_max]]
    offset = framing.first_packet_data_max
    while offset < len(data):
        end = min(offset + framing.next_packet_data_max, len(data))
        chunks.append(data[offset:end])
        offset = end
    return chunks


def build_packets(opcode: int, data: bytes, framing: FramingSpec) -> list[bytes]:
    chunks = split_payload(data, framing)
    count = len(chunks)
    if count > 0xFF:
        raise InvalidArgumentError(f"Payload of {len(data)} bytes needs too many packets")

    packets: list[bytes] = []
    for index, chunk in enumerate(chunks, start=1):
        if index == 1:
            header = bytes([index, count, _FIRST_PACKET_PREAMBLE_BYTES + len(chunk)])
            preamble = (
                framing.prefix_id.to_bytes(2, "little")
                + opcode.to_bytes(2, "little")
                + len(data).to_bytes(2, "little")
            )
            packets.append(header + preamble + chunk)
        else:
            packets.append(bytes([index, count, len(chunk)]) + chunk)
    return packets


def encode_text(value: str, *, field: str, max_bytes: int) -> bytes:
    encoded = value.encode("utf-8")
    if len(encoded) > max_bytes:
        raise InvalidArgumentError(f"{field} length exceeds {max_bytes} bytes")
    return encoded


def encode_command(profile: DeviceProfile, command: Command, data: bytes = b"") -> list[bytes]:
    return build_packets(profile.commands.opcode(command), data, profile.framing)

"""
OSC Message Encoder
Builds OSC-style binary messages carrying int32 heart-rate values

Wire layout:
    1. Address string, UTF-8, NUL-padded with (4 - len % 4) % 4 bytes
    2. Type tag string ',' + 'i' per argument, padded the same way
    3. Each argument as a big-endian signed 32-bit integer

Addresses whose length is already a multiple of 4 carry no padding at all.
"""

import struct
from typing import Iterable, List, Sequence, Tuple

from heartsync.errors import MalformedPayload

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1

DEFAULT_PLAYER_TEMPLATE = '/player/{id}/bpm'
DEFAULT_GROUP_ADDRESS = '/wek/bpm'


def _padded(text: str) -> bytes:
    raw = text.encode('utf-8')
    return raw + b'\x00' * ((4 - len(raw) % 4) % 4)


def encode_message(address: str, *values: int) -> bytes:
    """
    Encode an address and integer arguments into one message

    Args:
        address: OSC address pattern, e.g. '/player/1/bpm'
        values: One or more integers within int32 range

    Returns:
        bytes: Encoded message, length a multiple of 4

    Raises:
        ValueError: No values, or a value outside int32 range
    """
    if not values:
        raise ValueError("At least one value is required")

    for value in values:
        if not INT32_MIN <= value <= INT32_MAX:
            raise ValueError(f"Value {value} does not fit in int32")

    type_tag = ',' + 'i' * len(values)
    arguments = struct.pack(f'>{len(values)}i', *values)

    return _padded(address) + _padded(type_tag) + arguments


def encode_player_message(session_id: int, bpm: int, template: str = DEFAULT_PLAYER_TEMPLATE) -> bytes:
    """Single-value message addressed to one session, e.g. /player/2/bpm"""
    return encode_message(template.format(id=session_id), bpm)


def encode_group_message(values: Sequence[int], address: str = DEFAULT_GROUP_ADDRESS) -> bytes:
    """Multi-value bundle carrying every active session's bpm under one address"""
    return encode_message(address, *values)


def encode_actuator_payload(values: Iterable[int]) -> bytes:
    """
    Encode values for the text actuator channel

    Args:
        values: One or more bpm values

    Returns:
        bytes: ASCII decimals joined by ',' (e.g. b'72,68,75'), no framing
    """
    return ','.join(str(int(v)) for v in values).encode('utf-8')


def _read_address(data: bytes) -> Tuple[str, int]:
    # An aligned address has no NUL, so it ends where a chunk opens the type tag
    position = 0
    while position < len(data):
        chunk = data[position:position + 4]
        if position > 0 and chunk[:1] == b',':
            return data[:position].decode('utf-8'), position
        if b'\x00' in chunk:
            return data[:position + chunk.index(b'\x00')].decode('utf-8'), position + 4
        position += 4
    raise MalformedPayload("Address runs past end of message")


def decode_message(data: bytes) -> Tuple[str, List[int]]:
    """
    Parse a message produced by encode_message

    Args:
        data: Encoded message

    Returns:
        (address, values)

    Raises:
        MalformedPayload: Layout does not match the wire format
    """
    if len(data) % 4 or not data.startswith(b'/'):
        raise MalformedPayload("Not an OSC-style message")

    try:
        address, offset = _read_address(data)
        if data[offset:offset + 1] != b',':
            raise MalformedPayload("Missing type tag")

        tag_end = offset + 1
        while tag_end < len(data) and data[tag_end:tag_end + 1] == b'i':
            tag_end += 1
        count = tag_end - offset - 1
        if count == 0:
            raise MalformedPayload("Type tag carries no integer arguments")
        tag_length = tag_end - offset
        offset += tag_length + (4 - tag_length % 4) % 4

        if len(data) - offset != 4 * count:
            raise MalformedPayload(
                f"Expected {count} int32 arguments, found {len(data) - offset} bytes"
            )
        values = list(struct.unpack_from(f'>{count}i', data, offset))
    except (UnicodeDecodeError, struct.error) as e:
        raise MalformedPayload(str(e)) from e

    return address, values

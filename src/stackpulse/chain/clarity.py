"""Clarity value codec.

Decodes (and encodes) the consensus binary serialization of Clarity values
as it appears hex-encoded inside chainhook payloads, for example in the
``raw_value`` of a contract ``print`` event.

Two renderings are provided for decoded values:

- ``cv_to_json``: the typed form, every node as ``{"type": ..., "value": ...}``.
- ``cv_to_plain``: plain nested dicts, lists and scalars, which is what the
  event parsers consume.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

C32_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"

# Address versions
MAINNET_SINGLE_SIG = 22
MAINNET_MULTI_SIG = 20
TESTNET_SINGLE_SIG = 26
TESTNET_MULTI_SIG = 21

MAX_DEPTH = 64
HASH160_LENGTH = 20
CHECKSUM_LENGTH = 4


class DecodeError(ValueError):
    """Raised when a hex string is not a valid serialized Clarity value."""


class ClarityType(Enum):
    """Type prefixes of the Clarity consensus serialization."""

    INT = 0x00
    UINT = 0x01
    BUFFER = 0x02
    BOOL_TRUE = 0x03
    BOOL_FALSE = 0x04
    PRINCIPAL_STANDARD = 0x05
    PRINCIPAL_CONTRACT = 0x06
    RESPONSE_OK = 0x07
    RESPONSE_ERR = 0x08
    OPTIONAL_NONE = 0x09
    OPTIONAL_SOME = 0x0A
    LIST = 0x0B
    TUPLE = 0x0C
    STRING_ASCII = 0x0D
    STRING_UTF8 = 0x0E


@dataclass(frozen=True)
class ClarityValue:
    """A decoded Clarity value.

    ``value`` holds, by type: ``int`` for int/uint, ``bytes`` for buffers,
    ``bool`` for booleans, the address string for principals, the wrapped
    ``ClarityValue`` for responses and ``some``, ``None`` for ``none``, a
    tuple of values for lists, a tuple of ``(name, value)`` pairs for
    tuples and ``str`` for strings.
    """

    type: ClarityType
    value: Any = None


# ============================================================================
# c32check addresses
# ============================================================================


def c32_encode(data: bytes) -> str:
    """Encode bytes with the c32 alphabet, one ``0`` per leading zero byte."""
    n = int.from_bytes(data, "big")
    digits: list[str] = []
    while n:
        n, remainder = divmod(n, 32)
        digits.append(C32_ALPHABET[remainder])
    leading_zeros = len(data) - len(data.lstrip(b"\x00"))
    return "0" * leading_zeros + "".join(reversed(digits))


def c32_decode(text: str) -> bytes:
    """Decode a c32 string produced by ``c32_encode``."""
    normalized = text.upper().replace("O", "0").replace("L", "1").replace("I", "1")
    stripped = normalized.lstrip("0")
    leading_zeros = len(normalized) - len(stripped)

    n = 0
    for char in stripped:
        index = C32_ALPHABET.find(char)
        if index < 0:
            raise DecodeError(f"Invalid c32 character: {char!r}")
        n = n * 32 + index

    body = n.to_bytes((n.bit_length() + 7) // 8, "big") if n else b""
    return b"\x00" * leading_zeros + body


def _checksum(version: int, data: bytes) -> bytes:
    payload = bytes([version]) + data
    return hashlib.sha256(hashlib.sha256(payload).digest()).digest()[:CHECKSUM_LENGTH]


def c32_address(version: int, hash160: bytes) -> str:
    """Build a Stacks address (``S`` + c32check) from a version and hash160."""
    if not 0 <= version < 32:
        raise DecodeError(f"Invalid address version: {version}")
    if len(hash160) != HASH160_LENGTH:
        raise DecodeError(f"Invalid hash160 length: {len(hash160)}")
    return f"S{C32_ALPHABET[version]}{c32_encode(hash160 + _checksum(version, hash160))}"


def c32_address_decode(address: str) -> tuple[int, bytes]:
    """Split a Stacks address into its version and hash160.

    Raises:
        DecodeError: If the address is malformed or its checksum is wrong.
    """
    if len(address) < 3 or address[0] != "S":
        raise DecodeError(f"Invalid Stacks address: {address!r}")

    version = C32_ALPHABET.find(address[1].upper())
    if version < 0:
        raise DecodeError(f"Invalid address version character: {address[1]!r}")

    data = c32_decode(address[2:])
    hash160, checksum = data[:-CHECKSUM_LENGTH], data[-CHECKSUM_LENGTH:]
    if len(hash160) != HASH160_LENGTH:
        raise DecodeError(f"Invalid hash160 length in address: {address!r}")
    if _checksum(version, hash160) != checksum:
        raise DecodeError(f"Bad address checksum: {address!r}")
    return version, hash160


# ============================================================================
# Decoding
# ============================================================================


class _Reader:
    """Cursor over the serialized bytes."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def take(self, length: int) -> bytes:
        end = self.pos + length
        if end > len(self.data):
            raise DecodeError(
                f"Unexpected end of input: wanted {length} bytes at offset {self.pos}"
            )
        chunk = self.data[self.pos : end]
        self.pos = end
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u32(self) -> int:
        return int.from_bytes(self.take(4), "big")

    @property
    def exhausted(self) -> bool:
        return self.pos == len(self.data)


def _read_principal(reader: _Reader) -> str:
    version = reader.u8()
    hash160 = reader.take(HASH160_LENGTH)
    return c32_address(version, hash160)


def _read_value(reader: _Reader, depth: int = 0) -> ClarityValue:
    if depth > MAX_DEPTH:
        raise DecodeError("Value nesting too deep")

    prefix = reader.u8()
    try:
        cv_type = ClarityType(prefix)
    except ValueError:
        raise DecodeError(f"Unknown Clarity type prefix: 0x{prefix:02x}") from None

    if cv_type is ClarityType.INT:
        return ClarityValue(cv_type, int.from_bytes(reader.take(16), "big", signed=True))
    if cv_type is ClarityType.UINT:
        return ClarityValue(cv_type, int.from_bytes(reader.take(16), "big"))
    if cv_type is ClarityType.BUFFER:
        return ClarityValue(cv_type, reader.take(reader.u32()))
    if cv_type is ClarityType.BOOL_TRUE:
        return ClarityValue(cv_type, True)
    if cv_type is ClarityType.BOOL_FALSE:
        return ClarityValue(cv_type, False)
    if cv_type is ClarityType.PRINCIPAL_STANDARD:
        return ClarityValue(cv_type, _read_principal(reader))
    if cv_type is ClarityType.PRINCIPAL_CONTRACT:
        address = _read_principal(reader)
        name = reader.take(reader.u8())
        try:
            return ClarityValue(cv_type, f"{address}.{name.decode('ascii')}")
        except UnicodeDecodeError as e:
            raise DecodeError("Contract name is not ASCII") from e
    if cv_type in (ClarityType.RESPONSE_OK, ClarityType.RESPONSE_ERR, ClarityType.OPTIONAL_SOME):
        return ClarityValue(cv_type, _read_value(reader, depth + 1))
    if cv_type is ClarityType.OPTIONAL_NONE:
        return ClarityValue(cv_type, None)
    if cv_type is ClarityType.LIST:
        count = reader.u32()
        return ClarityValue(cv_type, tuple(_read_value(reader, depth + 1) for _ in range(count)))
    if cv_type is ClarityType.TUPLE:
        count = reader.u32()
        entries = []
        for _ in range(count):
            raw_name = reader.take(reader.u8())
            try:
                name = raw_name.decode("ascii")
            except UnicodeDecodeError as e:
                raise DecodeError("Tuple key is not ASCII") from e
            entries.append((name, _read_value(reader, depth + 1)))
        return ClarityValue(cv_type, tuple(entries))

    raw = reader.take(reader.u32())
    encoding = "ascii" if cv_type is ClarityType.STRING_ASCII else "utf-8"
    try:
        return ClarityValue(cv_type, raw.decode(encoding))
    except UnicodeDecodeError as e:
        raise DecodeError(f"Invalid {encoding} string content") from e


def decode_clarity_hex(hex_value: str) -> ClarityValue:
    """Decode a hex-encoded serialized Clarity value.

    Args:
        hex_value: Hex string, with or without a ``0x`` prefix.

    Returns:
        The decoded ClarityValue.

    Raises:
        DecodeError: If the hex is malformed or the encoding unrecognized.
    """
    if not isinstance(hex_value, str):
        raise DecodeError(f"Expected a hex string, got {type(hex_value).__name__}")

    text = hex_value[2:] if hex_value[:2].lower() == "0x" else hex_value
    try:
        data = bytes.fromhex(text)
    except ValueError as e:
        raise DecodeError(f"Malformed hex: {e}") from e
    if not data:
        raise DecodeError("Empty input")

    reader = _Reader(data)
    value = _read_value(reader)
    if not reader.exhausted:
        raise DecodeError(f"Trailing bytes after value at offset {reader.pos}")
    return value


# ============================================================================
# Encoding
# ============================================================================


def _write_principal(address: str) -> bytes:
    version, hash160 = c32_address_decode(address)
    return bytes([version]) + hash160


def encode_clarity(value: ClarityValue) -> bytes:
    """Serialize a ClarityValue to its consensus byte form.

    Tuple entries are written in sorted key order.
    """
    prefix = bytes([value.type.value])
    cv_type = value.type

    if cv_type is ClarityType.INT:
        return prefix + value.value.to_bytes(16, "big", signed=True)
    if cv_type is ClarityType.UINT:
        return prefix + value.value.to_bytes(16, "big")
    if cv_type is ClarityType.BUFFER:
        return prefix + len(value.value).to_bytes(4, "big") + bytes(value.value)
    if cv_type in (ClarityType.BOOL_TRUE, ClarityType.BOOL_FALSE, ClarityType.OPTIONAL_NONE):
        return prefix
    if cv_type is ClarityType.PRINCIPAL_STANDARD:
        return prefix + _write_principal(value.value)
    if cv_type is ClarityType.PRINCIPAL_CONTRACT:
        address, name = value.value.split(".", 1)
        raw_name = name.encode("ascii")
        return prefix + _write_principal(address) + bytes([len(raw_name)]) + raw_name
    if cv_type in (ClarityType.RESPONSE_OK, ClarityType.RESPONSE_ERR, ClarityType.OPTIONAL_SOME):
        return prefix + encode_clarity(value.value)
    if cv_type is ClarityType.LIST:
        items = value.value
        return prefix + len(items).to_bytes(4, "big") + b"".join(encode_clarity(v) for v in items)
    if cv_type is ClarityType.TUPLE:
        entries = sorted(value.value, key=lambda entry: entry[0])
        body = b"".join(
            bytes([len(name)]) + name.encode("ascii") + encode_clarity(v) for name, v in entries
        )
        return prefix + len(entries).to_bytes(4, "big") + body

    encoding = "ascii" if cv_type is ClarityType.STRING_ASCII else "utf-8"
    raw = value.value.encode(encoding)
    return prefix + len(raw).to_bytes(4, "big") + raw


def encode_clarity_hex(value: ClarityValue) -> str:
    """Serialize a ClarityValue to a ``0x``-prefixed hex string."""
    return "0x" + encode_clarity(value).hex()


# Value builders


def int_cv(value: int) -> ClarityValue:
    return ClarityValue(ClarityType.INT, value)


def uint_cv(value: int) -> ClarityValue:
    if value < 0:
        raise ValueError("uint cannot be negative")
    return ClarityValue(ClarityType.UINT, value)


def bool_cv(value: bool) -> ClarityValue:
    return ClarityValue(ClarityType.BOOL_TRUE if value else ClarityType.BOOL_FALSE, value)


def buffer_cv(value: bytes) -> ClarityValue:
    return ClarityValue(ClarityType.BUFFER, bytes(value))


def principal_cv(address: str) -> ClarityValue:
    if "." in address:
        return ClarityValue(ClarityType.PRINCIPAL_CONTRACT, address)
    return ClarityValue(ClarityType.PRINCIPAL_STANDARD, address)


def string_ascii_cv(value: str) -> ClarityValue:
    return ClarityValue(ClarityType.STRING_ASCII, value)


def string_utf8_cv(value: str) -> ClarityValue:
    return ClarityValue(ClarityType.STRING_UTF8, value)


def none_cv() -> ClarityValue:
    return ClarityValue(ClarityType.OPTIONAL_NONE, None)


def some_cv(value: ClarityValue) -> ClarityValue:
    return ClarityValue(ClarityType.OPTIONAL_SOME, value)


def ok_cv(value: ClarityValue) -> ClarityValue:
    return ClarityValue(ClarityType.RESPONSE_OK, value)


def err_cv(value: ClarityValue) -> ClarityValue:
    return ClarityValue(ClarityType.RESPONSE_ERR, value)


def list_cv(values: Sequence[ClarityValue]) -> ClarityValue:
    return ClarityValue(ClarityType.LIST, tuple(values))


def tuple_cv(entries: Mapping[str, ClarityValue]) -> ClarityValue:
    return ClarityValue(ClarityType.TUPLE, tuple(entries.items()))


# ============================================================================
# Renderings
# ============================================================================


def cv_type_string(value: ClarityValue) -> str:
    """Return the Clarity type signature of a value, e.g. ``(buff 4)``."""
    cv_type = value.type
    if cv_type is ClarityType.INT:
        return "int"
    if cv_type is ClarityType.UINT:
        return "uint"
    if cv_type is ClarityType.BUFFER:
        return f"(buff {len(value.value)})"
    if cv_type in (ClarityType.BOOL_TRUE, ClarityType.BOOL_FALSE):
        return "bool"
    if cv_type in (ClarityType.PRINCIPAL_STANDARD, ClarityType.PRINCIPAL_CONTRACT):
        return "principal"
    if cv_type is ClarityType.RESPONSE_OK:
        return f"(response {cv_type_string(value.value)} UnknownType)"
    if cv_type is ClarityType.RESPONSE_ERR:
        return f"(response UnknownType {cv_type_string(value.value)})"
    if cv_type is ClarityType.OPTIONAL_NONE:
        return "(optional none)"
    if cv_type is ClarityType.OPTIONAL_SOME:
        return f"(optional {cv_type_string(value.value)})"
    if cv_type is ClarityType.LIST:
        items = value.value
        inner = cv_type_string(items[0]) if items else "UnknownType"
        return f"(list {len(items)} {inner})"
    if cv_type is ClarityType.TUPLE:
        fields = " ".join(f"({name} {cv_type_string(v)})" for name, v in value.value)
        return f"(tuple {fields})"
    if cv_type is ClarityType.STRING_ASCII:
        return f"(string-ascii {len(value.value.encode('ascii'))})"
    return f"(string-utf8 {len(value.value.encode('utf-8'))})"


def cv_to_json(value: ClarityValue) -> dict[str, Any]:
    """Render a value in typed JSON form.

    Integers are rendered as strings so the output survives JSON
    round-trips without precision loss.
    """
    cv_type = value.type
    type_string = cv_type_string(value)

    if cv_type in (ClarityType.RESPONSE_OK, ClarityType.RESPONSE_ERR):
        return {
            "type": type_string,
            "value": cv_to_json(value.value),
            "success": cv_type is ClarityType.RESPONSE_OK,
        }

    rendered: Any
    if cv_type in (ClarityType.INT, ClarityType.UINT):
        rendered = str(value.value)
    elif cv_type is ClarityType.BUFFER:
        rendered = "0x" + value.value.hex()
    elif cv_type is ClarityType.OPTIONAL_SOME:
        rendered = cv_to_json(value.value)
    elif cv_type is ClarityType.LIST:
        rendered = [cv_to_json(v) for v in value.value]
    elif cv_type is ClarityType.TUPLE:
        rendered = {name: cv_to_json(v) for name, v in value.value}
    else:
        rendered = value.value

    return {"type": type_string, "value": rendered}


def cv_to_plain(value: ClarityValue) -> Any:
    """Render a value as plain nested data.

    ``some``/``ok``/``err`` wrappers are unwrapped, ``none`` becomes
    ``None``, tuples become dicts and buffers ``0x``-prefixed hex strings.
    """
    cv_type = value.type
    if cv_type is ClarityType.BUFFER:
        return "0x" + value.value.hex()
    if cv_type in (ClarityType.RESPONSE_OK, ClarityType.RESPONSE_ERR, ClarityType.OPTIONAL_SOME):
        return cv_to_plain(value.value)
    if cv_type is ClarityType.LIST:
        return [cv_to_plain(v) for v in value.value]
    if cv_type is ClarityType.TUPLE:
        return {name: cv_to_plain(v) for name, v in value.value}
    return value.value


# ============================================================================
# Safe wrappers
# ============================================================================


def decode_clarity_value(hex_value: str) -> dict[str, Any] | None:
    """Decode a hex Clarity value to typed JSON, or None if it cannot be decoded."""
    try:
        return cv_to_json(decode_clarity_hex(hex_value))
    except DecodeError as e:
        logger.warning("Failed to decode Clarity value: %s", e)
        return None


def decode_print_payload(hex_value: str) -> dict[str, Any] | None:
    """Decode the hex payload of a print event to a plain mapping.

    Returns:
        The decoded mapping, or None when the hex cannot be decoded or does
        not hold a tuple.
    """
    try:
        plain = cv_to_plain(decode_clarity_hex(hex_value))
    except DecodeError as e:
        logger.warning("Failed to decode print event: %s", e)
        return None

    if not isinstance(plain, dict):
        logger.debug("Print payload is not a tuple: %r", plain)
        return None
    return plain

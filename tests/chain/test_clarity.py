"""Tests for the Clarity value codec."""

import pytest

from stackpulse.chain.clarity import (
    ClarityType,
    ClarityValue,
    DecodeError,
    bool_cv,
    buffer_cv,
    c32_address,
    c32_address_decode,
    cv_to_json,
    cv_to_plain,
    decode_clarity_hex,
    decode_clarity_value,
    decode_print_payload,
    encode_clarity_hex,
    err_cv,
    int_cv,
    list_cv,
    none_cv,
    ok_cv,
    principal_cv,
    some_cv,
    string_ascii_cv,
    string_utf8_cv,
    tuple_cv,
    uint_cv,
)

BOOT_ADDRESS = "SP000000000000000000002Q6VF78"
USER_ADDRESS = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"


# ============================================================================
# c32check
# ============================================================================


class TestC32Address:
    """Tests for Stacks address encoding."""

    def test_boot_address(self) -> None:
        """Test the well-known boot address is version 22 with a zero hash."""
        assert c32_address(22, bytes(20)) == BOOT_ADDRESS
        assert c32_address_decode(BOOT_ADDRESS) == (22, bytes(20))

    def test_address_round_trip(self) -> None:
        """Test decoding and re-encoding a real address."""
        version, hash160 = c32_address_decode(USER_ADDRESS)
        assert version == 22
        assert c32_address(version, hash160) == USER_ADDRESS

    def test_bad_checksum(self) -> None:
        """Test a corrupted address is rejected."""
        corrupted = USER_ADDRESS[:-1] + ("8" if USER_ADDRESS[-1] != "8" else "9")
        with pytest.raises(DecodeError):
            c32_address_decode(corrupted)

    def test_invalid_prefix(self) -> None:
        """Test addresses must start with S."""
        with pytest.raises(DecodeError):
            c32_address_decode("XP000000000000000000002Q6VF78")

    def test_invalid_hash_length(self) -> None:
        """Test hash160 must be 20 bytes."""
        with pytest.raises(DecodeError):
            c32_address(22, bytes(19))


# ============================================================================
# Decoding
# ============================================================================


class TestDecode:
    """Tests for decode_clarity_hex."""

    def test_uint(self) -> None:
        """Test a uint with and without the 0x prefix."""
        hex_value = "01" + (100).to_bytes(16, "big").hex()
        assert decode_clarity_hex(hex_value) == ClarityValue(ClarityType.UINT, 100)
        assert decode_clarity_hex("0x" + hex_value).value == 100

    def test_negative_int(self) -> None:
        """Test ints are two's complement."""
        hex_value = "00" + (-5).to_bytes(16, "big", signed=True).hex()
        assert decode_clarity_hex(hex_value).value == -5

    def test_bools_and_none(self) -> None:
        """Test single-byte values."""
        assert decode_clarity_hex("03").value is True
        assert decode_clarity_hex("04").value is False
        assert decode_clarity_hex("09").value is None

    def test_standard_principal(self) -> None:
        """Test a principal renders as its c32 address."""
        hex_value = "05" + "16" + "00" * 20
        assert decode_clarity_hex(hex_value).value == BOOT_ADDRESS

    def test_contract_principal(self) -> None:
        """Test a contract principal keeps its name."""
        name = b"stackpulse-core"
        hex_value = "06" + "16" + "00" * 20 + f"{len(name):02x}" + name.hex()
        assert decode_clarity_hex(hex_value).value == f"{BOOT_ADDRESS}.stackpulse-core"

    def test_string_ascii(self) -> None:
        """Test a string-ascii value."""
        assert decode_clarity_hex("0d0000000568656c6c6f").value == "hello"

    def test_tuple(self) -> None:
        """Test a tuple decodes to ordered name/value pairs."""
        value = decode_clarity_hex(
            encode_clarity_hex(tuple_cv({"event": string_ascii_cv("fee-collected")}))
        )
        assert value.type is ClarityType.TUPLE
        assert value.value[0][0] == "event"

    @pytest.mark.parametrize(
        "hex_value",
        [
            "",
            "0x",
            "zz",
            "0",
            "01" + "00" * 15,
            "ff",
            "0d00000005686568",
            "0301",
            "0b00000002" + "03",
        ],
        ids=[
            "empty",
            "prefix-only",
            "not-hex",
            "odd-length",
            "truncated-uint",
            "unknown-prefix",
            "truncated-string",
            "trailing-bytes",
            "short-list",
        ],
    )
    def test_malformed_input(self, hex_value: str) -> None:
        """Test malformed input raises DecodeError."""
        with pytest.raises(DecodeError):
            decode_clarity_hex(hex_value)

    def test_non_string_input(self) -> None:
        """Test non-string input raises DecodeError."""
        with pytest.raises(DecodeError):
            decode_clarity_hex(None)  # type: ignore[arg-type]

    def test_invalid_utf8(self) -> None:
        """Test string-utf8 content must be valid UTF-8."""
        with pytest.raises(DecodeError):
            decode_clarity_hex("0e00000001ff")


# ============================================================================
# Round trips
# ============================================================================


class TestRoundTrip:
    """Tests that decode and re-encode agree."""

    def test_nested_value(self) -> None:
        """Test a deeply structured value survives a round trip."""
        value = tuple_cv(
            {
                "amount": uint_cv(1_500_000),
                "event": string_ascii_cv("subscription-created"),
                "memo": some_cv(buffer_cv(b"\x01\x02")),
                "owner": principal_cv(USER_ADDRESS),
                "result": ok_cv(list_cv([int_cv(-1), bool_cv(True), none_cv()])),
                "title": string_utf8_cv("café"),
            }
        )

        hex_value = encode_clarity_hex(value)

        assert decode_clarity_hex(hex_value) == value
        assert encode_clarity_hex(decode_clarity_hex(hex_value)) == hex_value

    def test_tuple_keys_written_sorted(self) -> None:
        """Test tuple encoding is independent of key insertion order."""
        first = tuple_cv({"a": uint_cv(1), "b": uint_cv(2)})
        second = tuple_cv({"b": uint_cv(2), "a": uint_cv(1)})
        assert encode_clarity_hex(first) == encode_clarity_hex(second)

    def test_contract_principal(self) -> None:
        """Test contract principals round trip."""
        value = principal_cv(f"{USER_ADDRESS}.badge-nft")
        assert decode_clarity_hex(encode_clarity_hex(value)) == value


# ============================================================================
# Renderings
# ============================================================================


class TestRenderings:
    """Tests for typed and plain renderings."""

    def test_cv_to_json(self) -> None:
        """Test the typed form."""
        assert cv_to_json(uint_cv(7)) == {"type": "uint", "value": "7"}
        assert cv_to_json(err_cv(uint_cv(1))) == {
            "type": "(response UnknownType uint)",
            "value": {"type": "uint", "value": "1"},
            "success": False,
        }
        assert cv_to_json(buffer_cv(b"\xab"))["value"] == "0xab"

    def test_cv_to_plain(self) -> None:
        """Test the plain form unwraps optionals and responses."""
        value = tuple_cv(
            {"id": uint_cv(3), "tag": some_cv(string_ascii_cv("x")), "gone": none_cv()}
        )
        assert cv_to_plain(value) == {"id": 3, "tag": "x", "gone": None}


# ============================================================================
# Safe wrappers
# ============================================================================


class TestSafeWrappers:
    """Tests for the wrappers that never raise."""

    def test_decode_clarity_value_failure(self) -> None:
        """Test a malformed value decodes to None."""
        assert decode_clarity_value("0xzz") is None

    def test_decode_clarity_value_success(self) -> None:
        """Test a valid value decodes to typed JSON."""
        assert decode_clarity_value(encode_clarity_hex(bool_cv(True))) == {
            "type": "bool",
            "value": True,
        }

    def test_decode_print_payload(self) -> None:
        """Test a print tuple decodes to a plain dict."""
        hex_value = encode_clarity_hex(
            tuple_cv({"event": string_ascii_cv("fee-collected"), "amount": uint_cv(5000)})
        )
        assert decode_print_payload(hex_value) == {"amount": 5000, "event": "fee-collected"}

    def test_decode_print_payload_not_tuple(self) -> None:
        """Test a non-tuple print value is rejected."""
        assert decode_print_payload(encode_clarity_hex(uint_cv(1))) is None

    def test_decode_print_payload_malformed(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test malformed hex is logged and yields None."""
        assert decode_print_payload("0x0c") is None
        assert "Failed to decode print event" in caplog.text

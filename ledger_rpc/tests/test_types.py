import pytest

from ledger_rpc.types import (fixed_bytes, hex_prefix, num_to_hex,
                              parse_quantity, strip_hex_prefix, zero_bytes)


@pytest.mark.parametrize(
    "n, expected",
    [(0, "0x0"), (1, "0x1"), (5, "0x5"), (255, "0xff"), (71000, "0x11558"), (2**64, "0x10000000000000000")],
)
def test_num_to_hex_is_minimal_lowercase(n, expected):
    assert num_to_hex(n) == expected
    assert parse_quantity(num_to_hex(n)) == n


def test_num_to_hex_rejects_negative_and_non_int():
    with pytest.raises(ValueError):
        num_to_hex(-1)
    with pytest.raises(TypeError):
        num_to_hex(True)
    with pytest.raises(TypeError):
        num_to_hex("5")  # type: ignore[arg-type]


@pytest.mark.parametrize("width", [1, 8, 20, 32, 256])
def test_zero_bytes_has_two_digits_per_byte(width):
    z = zero_bytes(width)
    assert z.startswith("0x")
    assert len(z) == 2 + 2 * width
    assert set(z[2:]) == {"0"}


def test_zero_width_is_bare_zero_scalar():
    assert zero_bytes(0) == "0x0"
    assert fixed_bytes(0, 0) == "0x0"


def test_fixed_bytes_pads_and_rejects_overflow():
    assert fixed_bytes(0xAB, 2) == "0x00ab"
    with pytest.raises(ValueError):
        fixed_bytes(0x10000, 2)


def test_hex_prefix_passes_text_through_and_hexifies_bytes():
    assert hex_prefix("abc123") == "0xabc123"
    assert hex_prefix("") == "0x"
    assert hex_prefix(b"\x60\x60") == "0x6060"
    assert hex_prefix(b"") == "0x"


def test_strip_hex_prefix_requires_0x():
    assert strip_hex_prefix("0xdead") == "dead"
    assert strip_hex_prefix("0x") == ""
    with pytest.raises(ValueError):
        strip_hex_prefix("dead")


@pytest.mark.parametrize("bad", ["0x", "12", "0xg1", "0x-1", "0x1_0", " 0x1"])
def test_parse_quantity_is_strict(bad):
    with pytest.raises(ValueError):
        parse_quantity(bad)

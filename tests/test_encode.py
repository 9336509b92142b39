import base64

import pytest

from keepersim.encode import decode, encode


def test_encode_is_compact_with_newline():
    assert encode({"a": 1}) == b'{"a":1}\n'


def test_encode_escapes_html_characters():
    assert encode("<>&") == b'"\\u003c\\u003e\\u0026"\n'


@pytest.mark.parametrize(
    "value",
    [
        {"keys": ["1239487928374|18768923479234987", "1239487928375|18768923479234987"]},
        [1, 2.5, None, True, "text"],
        "caf\u00e9 <b>",
        {},
    ],
)
def test_round_trip(value):
    assert decode(encode(value)) == value


def test_bytes_are_base64():
    raw = b"1239487928374|18768923479234989"
    assert base64.b64decode(decode(encode(raw))) == raw


def test_decode_reads_only_first_value():
    assert decode(b"  [1]\n[2]\n") == [1]


def test_decode_empty_raises():
    with pytest.raises(ValueError):
        decode(b"  \n")


def test_decode_invalid_raises():
    with pytest.raises(ValueError):
        decode(b"{not json")


def test_encode_nan_raises():
    with pytest.raises(ValueError):
        encode(float("nan"))


def test_encode_unknown_type_raises():
    with pytest.raises(TypeError):
        encode(object())
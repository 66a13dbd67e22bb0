import math

import pytest

from jsonsocket.errors import EncodeError
from jsonsocket.framing import FrameEncoder


def test_length_counts_bytes_not_characters():
    # '"é"' is three characters but four UTF-8 bytes
    assert FrameEncoder().encode("é") == b'4#"\xc3\xa9"'


def test_compact_and_deterministic():
    enc = FrameEncoder()
    value = {"a": 1, "b": [1, 2]}
    assert enc.encode(value) == b'17#{"a":1,"b":[1,2]}'
    assert enc.encode(value) == enc.encode(value)


def test_custom_delimiter():
    assert FrameEncoder(":").encode("x") == b'3:"x"'


@pytest.mark.parametrize("value", [object(), {1, 2}, math.nan, "\ud800"])
def test_unserializable_values(value):
    with pytest.raises(EncodeError):
        FrameEncoder().encode(value)

import io

import pytest

from ristretto.sim import (
    BadLineError,
    SimulatorDone,
    collection,
    parse_arc,
    parse_lirs,
    reader,
    string_collection,
    uniform,
    zipfian,
)


def test_zipfian_is_skewed():
    s = zipfian(1.5, 1, 100, seed=42)
    counts = {}
    for _ in range(100):
        k = s()
        assert 0 <= k <= 100
        counts[k] = counts.get(k, 0) + 1
    assert 0 < len(counts) < 100


def test_zipfian_bad_parameters():
    with pytest.raises(ValueError):
        zipfian(1.0, 1, 100)
    with pytest.raises(ValueError):
        zipfian(1.5, 0.5, 100)


def test_uniform_range():
    s = uniform(100, seed=1)
    values = [s() for _ in range(100)]
    assert all(0 <= v < 100 for v in values)


def test_uniform_bad_maximum():
    with pytest.raises(ValueError):
        uniform(0)


def test_parse_lirs_reader():
    s = reader(parse_lirs, io.BytesIO(b"0\n1\r\n2\r\n"))
    assert [s() for _ in range(3)] == [0, 1, 2]
    with pytest.raises(SimulatorDone):
        s()


def test_parse_lirs_text_file():
    s = reader(parse_lirs, io.StringIO("5\n6"))
    assert s() == 5
    assert s() == 6


def test_parse_lirs_bad_number():
    with pytest.raises(ValueError):
        parse_lirs("abc\n")


def test_parse_arc_reader():
    s = reader(parse_arc, io.BytesIO(b"127 64 0 0\r\n191 36 0 0\r\n"))
    for i in range(100):
        assert s() == 127 + i
    with pytest.raises(SimulatorDone):
        s()


def test_parse_arc_bad_line():
    with pytest.raises(BadLineError):
        parse_arc("1 2 3\n")
    with pytest.raises(ValueError):
        parse_arc("x 2 0 0\n")


def test_parse_arc_empty_is_done():
    with pytest.raises(SimulatorDone):
        parse_arc("")


def test_collection():
    c = collection(uniform(100, seed=3), 100)
    assert len(c) == 100
    assert all(0 <= v < 100 for v in c)


def test_collection_fills_with_zero_after_end():
    s = reader(parse_lirs, io.StringIO("7\n"))
    assert collection(s, 3) == [7, 0, 0]


def test_string_collection():
    c = string_collection(uniform(100, seed=4), 100)
    assert len(c) == 100
    assert all(v.isdigit() and int(v) < 100 for v in c)
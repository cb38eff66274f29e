import pytest

from emojimap.reporting import atomic_write_text, atomic_writer


def test_atomic_write_text(tmp_path):
    path = tmp_path / "atomic.txt"

    atomic_write_text(str(path), "first")
    assert path.read_text(encoding="utf-8") == "first"

    atomic_write_text(str(path), "second")
    assert path.read_text(encoding="utf-8") == "second"

    leftovers = [p for p in tmp_path.iterdir() if p.name != "atomic.txt"]
    assert not leftovers


def test_atomic_writer_keeps_original_when_write_fails(tmp_path):
    path = tmp_path / "atomic.txt"
    atomic_write_text(str(path), "first")

    with pytest.raises(RuntimeError):
        with atomic_writer(str(path)) as f:
            f.write("partial")
            raise RuntimeError("disk full")

    assert path.read_text(encoding="utf-8") == "first"
    leftovers = [p for p in tmp_path.iterdir() if p.name != "atomic.txt"]
    assert not leftovers

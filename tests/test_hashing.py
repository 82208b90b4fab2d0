import pytest

from dcsbinder.hashing import bytes_blake3, file_blake3


def test_empty_input_digest():
    assert bytes_blake3(b"") == "af1349b9f5f9a1a6a0404dea36dcc9499bcb25c9adc112b7cc9a93cae41f3262"


def test_abc_digest():
    assert bytes_blake3(b"abc") == "6437b3ac38465133ffb63b75273a8db548c558465d79db03fd359c6cd5bd9d85"


@pytest.mark.parametrize("size", [1, 63, 64, 65, 1023, 1024, 1025, 2048, 3073, 5000])
def test_digest_shape_and_determinism(size):
    data = bytes(i % 251 for i in range(size))
    digest = bytes_blake3(data)
    assert len(digest) == 64
    assert all(c in "0123456789abcdef" for c in digest)
    assert bytes_blake3(data) == digest


@pytest.mark.parametrize("size", [64, 1024, 2048, 4096])
def test_one_byte_change_changes_digest(size):
    data = bytearray(size)
    changed = bytearray(data)
    changed[-1] = 1
    assert bytes_blake3(bytes(data)) != bytes_blake3(bytes(changed))


def test_prefix_has_different_digest():
    data = b"x" * 2049
    assert bytes_blake3(data) != bytes_blake3(data[:-1])


def test_file_digest_matches_bytes_digest(tmp_path):
    content = b"-- bindings\nlocal diff = {}\nreturn diff" * 50
    path = tmp_path / "MFDLeft.diff.lua"
    path.write_bytes(content)
    assert file_blake3(path) == bytes_blake3(content)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        file_blake3(tmp_path / "absent.lua")
import hashlib
import hmac
import os

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from semlakit.decrypt import (
    KEY_LENGTH,
    CryptoContext,
    DecryptionError,
    generate_key,
)

BASE_KEY = bytes(range(32))


def seal(key, plain, mask=b""):
    iv = os.urandom(16)
    body = plain + mask
    padder = padding.PKCS7(128).padder()
    padded = padder.update(body) + padder.finalize()
    enc = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    encrypted = enc.update(padded) + enc.finalize()
    mac = hmac.new(key, iv + body, hashlib.sha256).digest()
    return iv + encrypted + mac


def xor(a, b):
    return bytes(x ^ y for x, y in zip(a, b))


def test_generate_key_length_and_randomness():
    first = generate_key()
    assert len(first) == 32
    assert len(generate_key(7)) == 7
    assert first != generate_key()


def test_generate_key_rejects_nonpositive():
    with pytest.raises(ValueError):
        generate_key(0)


def test_context_rejects_wrong_key_length():
    with pytest.raises(ValueError):
        CryptoContext("", b"short")


def test_top_level_file_round_trip(tmp_path):
    ctx = CryptoContext(str(tmp_path), BASE_KEY)
    plain = b"model M end M;"
    assert ctx.decrypt("M.moc", seal(BASE_KEY, plain)) == plain


def test_tampered_mac_is_rejected(tmp_path):
    ctx = CryptoContext(str(tmp_path), BASE_KEY)
    data = bytearray(seal(BASE_KEY, b"contents"))
    data[-1] ^= 0xFF
    with pytest.raises(DecryptionError):
        ctx.decrypt("M.moc", bytes(data))


def test_wrong_key_is_rejected(tmp_path):
    ctx = CryptoContext(str(tmp_path), BASE_KEY)
    other = bytes(reversed(BASE_KEY))
    with pytest.raises(DecryptionError):
        ctx.decrypt("M.moc", seal(other, b"contents"))


def test_too_short_data_is_rejected(tmp_path):
    ctx = CryptoContext(str(tmp_path), BASE_KEY)
    with pytest.raises(DecryptionError):
        ctx.decrypt("M.moc", b"\x00" * 40)


def test_top_level_package_strips_and_stores_mask(tmp_path):
    ctx = CryptoContext(str(tmp_path), BASE_KEY)
    mask = bytes([7] * KEY_LENGTH)
    plain = b"package P end P;"
    assert ctx.decrypt("package.moc", seal(BASE_KEY, plain, mask)) == plain
    assert ctx.keymask_map == {"/": mask}


def test_cached_mask_is_applied_to_subdirectory_file(tmp_path):
    ctx = CryptoContext(str(tmp_path), BASE_KEY)
    mask = bytes([3] * KEY_LENGTH)
    ctx.store_keymask("a/package.moc", mask)
    data = seal(xor(BASE_KEY, mask), b"inner")
    assert ctx.decrypt("a/x.moc", data) == b"inner"


def test_mask_read_from_package_file_on_disk(tmp_path):
    (tmp_path / "a").mkdir()
    mask = bytes([9] * KEY_LENGTH)
    (tmp_path / "a" / "package.moc").write_bytes(seal(BASE_KEY, b"package A end A;", mask))
    ctx = CryptoContext(str(tmp_path), BASE_KEY)
    data = seal(xor(BASE_KEY, mask), b"model B end B;")
    assert ctx.decrypt("a/B.moc", data) == b"model B end B;"
    assert ctx.keymask_map["a"] == mask


def test_demask_key_falls_back_to_parent(tmp_path):
    ctx = CryptoContext(str(tmp_path), BASE_KEY)
    mask = bytes([5] * KEY_LENGTH)
    ctx.store_keymask("a/package.moc", mask)
    assert ctx.demask_key("a/b/c.moc", BASE_KEY) == xor(BASE_KEY, mask)


def test_demask_key_without_any_mask_is_identity(tmp_path):
    ctx = CryptoContext(str(tmp_path), BASE_KEY)
    assert ctx.demask_key("x/y/z.moc", BASE_KEY) == BASE_KEY
    assert ctx.demask_key("package.moc", BASE_KEY) == BASE_KEY


def test_backslash_separator(tmp_path):
    ctx = CryptoContext(str(tmp_path), BASE_KEY)
    mask = bytes([1] * KEY_LENGTH)
    ctx.store_keymask("d\\package.moc", mask)
    assert ctx.demask_key("d\\f.moc", BASE_KEY) == xor(BASE_KEY, mask)


def test_store_keymask_paths_and_no_overwrite():
    ctx = CryptoContext("", BASE_KEY)
    first = bytes([1] * KEY_LENGTH)
    second = bytes([2] * KEY_LENGTH)
    ctx.store_keymask("package.moc", first)
    ctx.store_keymask("a/b/package.moc", first)
    ctx.store_keymask("a/b/package.moc", second)
    assert ctx.keymask_map == {"/": first, "a/b": first}


def test_decrypt_without_data_primes_cache(tmp_path):
    (tmp_path / "a").mkdir()
    mask = bytes([4] * KEY_LENGTH)
    (tmp_path / "a" / "package.moc").write_bytes(seal(BASE_KEY, b"p", mask))
    ctx = CryptoContext(str(tmp_path), BASE_KEY)
    assert ctx.decrypt("a/x.moc") == b""
    assert ctx.keymask_map["a"] == mask


def test_corrupt_package_file_raises(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "a" / "package.moc").write_bytes(b"\x01" * 80)
    ctx = CryptoContext(str(tmp_path), BASE_KEY)
    with pytest.raises(DecryptionError):
        ctx.decrypt("a/x.moc", seal(BASE_KEY, b"data"))


def test_demask_disabled_keeps_mask_bytes(tmp_path):
    ctx = CryptoContext(str(tmp_path), BASE_KEY, demask=False)
    mask = bytes([8] * KEY_LENGTH)
    plain = b"package P end P;"
    assert ctx.decrypt("package.moc", seal(BASE_KEY, plain, mask)) == plain + mask
    assert ctx.keymask_map == {}
"""Encryption of library files with per-directory key masks."""

from __future__ import annotations

import hashlib
import hmac
from typing import BinaryIO

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .decrypt import (
    BLOCK_SIZE,
    IV_LENGTH,
    KEY_LENGTH,
    PACKAGE_MO,
    TOP_LEVEL,
    CryptoContext,
    _log,
    _split_path,
    _xor,
    generate_key,
)

READ_BUF_LEN = 256


class EncryptionError(Exception):
    """Data could not be encrypted, or the key masks were used out of order."""


def _parent_masked(context: CryptoContext, path: str, key: bytes) -> bytes:
    """Apply the masks of a directory's parents to key."""
    try:
        masked, store_mask = mask_key(context, path, key)
    except EncryptionError as exc:
        raise EncryptionError(f"Unexpected key mask output when processing {path}") from exc
    if store_mask is not None:
        raise EncryptionError(f"Unexpected key mask output when processing {path}")
    return masked


def mask_key(
    context: CryptoContext, rel_file_path: str, key: bytes
) -> tuple[bytes, bytes | None]:
    """Mask key for the file at rel_file_path.

    Returns the masked key and, for a package.mo file, the freshly generated
    mask of its directory, which must be stored in the encrypted file. For
    other files the second item is None.
    """
    key = bytes(key)
    if len(key) != KEY_LENGTH:
        raise ValueError(f"Key must be {KEY_LENGTH} bytes long.")
    _log(f"mlle_mask_key: got key for {rel_file_path} ")

    directory, basename, has_dir = _split_path(rel_file_path)
    path = directory if has_dir else TOP_LEVEL

    if basename.lower() == PACKAGE_MO:
        if path in context.keymask_map:
            raise EncryptionError(
                f"Found key mask in the table while working on {rel_file_path}; "
                "package.mo must be encrypted first"
            )
        if not path.startswith("/"):
            key = _parent_masked(context, path, key)
        store_mask = generate_key(KEY_LENGTH)
        context.keymask_map[path] = store_mask
        _log(f"mlle_mask_key: generated and stored mask for {path} ")
        return key, store_mask

    mask = context.keymask_map.get(path)
    if mask is None:
        # Nothing stored for this directory: inherit the parent's mask.
        mask = context.no_mask
        if not path.startswith("/"):
            mask = _parent_masked(context, path, mask)
        _log(f"mlle_mask_key: storing mask based on parent for {path} ")
        context.keymask_map[path] = mask

    key = _xor(key, mask)
    _log(f"mlle_mask_key: applied key mask for {rel_file_path} ")
    return key, None


def _write(outfile: BinaryIO, data: bytes) -> int:
    if not data:
        return 0
    try:
        count = outfile.write(data)
    except OSError as exc:
        raise EncryptionError(f"Could not write encrypted data: {exc}") from exc
    if count is not None and count < len(data):
        raise EncryptionError("Could not write all encrypted data.")
    return len(data)


def encrypt(
    context: CryptoContext, rel_file_path: str, infile: BinaryIO, outfile: BinaryIO
) -> int:
    """Encrypt infile until end of file and write IV, ciphertext and HMAC to outfile.

    For a package.mo file the new directory mask is encrypted after the data.
    Returns the number of bytes written.
    """
    iv = generate_key(IV_LENGTH)
    written = _write(outfile, iv)

    key = context.key
    store_mask = None
    if context.demask:
        key, store_mask = mask_key(context, rel_file_path, key)

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
    mac = hmac.new(key, iv, hashlib.sha256)

    def emit(chunk: bytes) -> int:
        mac.update(chunk)
        return _write(outfile, encryptor.update(padder.update(chunk)))

    while True:
        try:
            chunk = infile.read(READ_BUF_LEN)
        except OSError as exc:
            raise EncryptionError(f"Could not read cleartext data: {exc}") from exc
        if not chunk:
            break
        written += emit(bytes(chunk))

    if store_mask is not None:
        written += emit(store_mask)

    written += _write(outfile, encryptor.update(padder.finalize()) + encryptor.finalize())
    written += _write(outfile, mac.digest())
    return written
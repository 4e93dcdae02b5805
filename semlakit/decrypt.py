"""Decryption of library files with per-directory key masks."""

from __future__ import annotations

import hashlib
import hmac
import secrets

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from . import io as mlle_io
from .errors import MlleError
from .io import read_file

KEY_LENGTH = 32
IV_LENGTH = 16
BLOCK_SIZE = 16
MAC_LENGTH = hashlib.sha256().digest_size
PACKAGE_MO = "package.mo"
PACKAGE_MOC = "package.moc"
TOP_LEVEL = "/"


class DecryptionError(Exception):
    """Encrypted data could not be decrypted or authenticated."""


def generate_key(length: int = KEY_LENGTH) -> bytes:
    """Return ``length`` cryptographically secure random bytes."""
    if length < 1:
        raise ValueError("Key length must be positive.")
    return secrets.token_bytes(length)


def _log(message: str) -> None:
    stream = mlle_io.log_stream
    if stream is not None:
        stream.write(message + "\n")


def _xor(key: bytes, mask: bytes) -> bytes:
    return bytes(a ^ b for a, b in zip(key, mask))


def _split_path(rel_file_path: str) -> tuple[str, str, bool]:
    """Directory part, file name part and whether a directory part is present."""
    last = max(rel_file_path.rfind("/"), rel_file_path.rfind("\\"))
    if last > 0:
        return rel_file_path[:last], rel_file_path[last + 1 :], True
    return "", rel_file_path, False


def _is_package_moc(rel_file_path: str) -> bool:
    return _split_path(rel_file_path)[1].lower() == PACKAGE_MOC


class CryptoContext:
    """Holds the base key, the base directory and the cache of directory key masks."""

    def __init__(
        self, basedir: str = "", key: bytes | None = None, *, demask: bool = True
    ) -> None:
        key = generate_key() if key is None else bytes(key)
        if len(key) != KEY_LENGTH:
            raise ValueError(f"Key must be {KEY_LENGTH} bytes long.")
        self.basedir = basedir
        self.key = key
        self.demask = demask
        self.no_mask = bytes(KEY_LENGTH)
        # Relative directory path ("/" for the top level) -> key mask.
        self.keymask_map: dict[str, bytes] = {}

    def _full_path(self, rel_path: str) -> str:
        return f"{self.basedir}/{rel_path}" if self.basedir else rel_path

    def demask_key(self, rel_file_path: str, key: bytes) -> bytes:
        """Return the key with the mask of the file's directory applied."""
        _log(f"mlle_demask_key: {rel_file_path}")
        directory, basename, has_dir = _split_path(rel_file_path)

        if basename.lower() == PACKAGE_MOC:
            if not has_dir:
                # The top-level package file carries no mask.
                return bytes(key)
            return self.demask_key(directory, key)

        mask = self.keymask_map.get(directory if has_dir else TOP_LEVEL)
        if mask is not None:
            _log(f"mlle_demask_key: applied mask for {rel_file_path}")
            return _xor(key, mask)

        package = f"{directory}/{PACKAGE_MOC}" if has_dir else PACKAGE_MOC
        try:
            contents = read_file(self._full_path(package))
        except MlleError:
            # No package file here: use the mask of the parent directory.
            return self.demask_key(package, key)

        _, mask = self._decrypt(package, contents)
        if mask is None:
            raise DecryptionError(f"No key mask found in {package}.")
        _log(f"mlle_demask_key: applied mask for {rel_file_path}")
        return _xor(key, mask)

    def store_keymask(self, rel_file_path: str, key_mask: bytes) -> None:
        """Cache the mask read from a package file for its directory, unless cached."""
        size = len(rel_file_path)
        rel_len = 0 if size <= len(PACKAGE_MOC) else size - (len(PACKAGE_MOC) + 1)
        relpath = rel_file_path[:rel_len] if rel_len > 0 else TOP_LEVEL
        if relpath in self.keymask_map:
            return
        self.keymask_map[relpath] = bytes(key_mask[:KEY_LENGTH])
        _log(f"mlle_store_keymask: stored key_mask for {rel_file_path} ")

    def _decrypt(
        self, rel_file_path: str | None, data: bytes | None
    ) -> tuple[bytes, bytes | None]:
        key = self.key
        store_mask = False
        if self.demask and rel_file_path is not None:
            key = self.demask_key(rel_file_path, key)
            store_mask = _is_package_moc(rel_file_path)
        if data is None:
            return b"", None

        data = bytes(data)
        body_len = len(data) - IV_LENGTH - MAC_LENGTH
        if body_len < BLOCK_SIZE or body_len % BLOCK_SIZE:
            raise DecryptionError("Encrypted data has an invalid length.")
        iv = data[:IV_LENGTH]
        encrypted = data[IV_LENGTH : IV_LENGTH + body_len]
        mac_in = data[IV_LENGTH + body_len :]

        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
        try:
            padded = decryptor.update(encrypted) + decryptor.finalize()
            plain = unpadder.update(padded) + unpadder.finalize()
        except ValueError as exc:
            raise DecryptionError("Decryption failed.") from exc

        mac = hmac.new(key, iv + plain, hashlib.sha256).digest()
        if not hmac.compare_digest(mac, mac_in):
            raise DecryptionError("Message authentication failed.")

        if not store_mask:
            return plain, None
        if len(plain) < KEY_LENGTH:
            raise DecryptionError("Decrypted package file is too short to hold a key mask.")
        mask = plain[-KEY_LENGTH:]
        assert rel_file_path is not None
        self.store_keymask(rel_file_path, mask)
        return plain[:-KEY_LENGTH], mask

    def decrypt(self, rel_file_path: str | None, data: bytes | None = None) -> bytes:
        """Decrypt IV + ciphertext + HMAC data belonging to a file.

        With no data only the key masks on the file's path are loaded and
        b"" is returned.
        """
        return self._decrypt(rel_file_path, data)[0]
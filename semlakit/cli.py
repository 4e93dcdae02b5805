"""Command line entry points that encrypt and decrypt single library files."""

from __future__ import annotations

import contextlib
import os
import sys
from collections.abc import Sequence

from . import io as mlle_io
from .decrypt import KEY_LENGTH, CryptoContext, DecryptionError
from .encrypt import EncryptionError, encrypt
from .errors import MlleError

KEY_ENV_VAR = "SEMLAKIT_KEY"
KEY_FILE_OPTION = "--key-file"
BUF_SIZE = 10 * 1024 * 1024

_ENCRYPT_USAGE = (
    "Usage: {prog} [--key-file <key file>] <cleartext file> <encrypted file> [<basedirdest>]\n"
    "<cleartext file> - name of file to encrypt; absolute path\n"
    "<encrypted file> - name of encrypted file; this is relative path if <basedirdest> is given\n"
    "<basedirdest> - <encrypted file> is relative to this directory if given\n"
)
_DECRYPT_USAGE = (
    "Usage: {prog} [--key-file <key file>] <encrypted basedir> <encrypted file> "
    "<cleartext file>\n"
)


class _UsageError(Exception):
    pass


def _err(message: str) -> None:
    sys.stderr.write(message)


def _split_options(args: Sequence[str]) -> tuple[str | None, list[str]]:
    """Take the key file option out of args; return it and the positional arguments."""
    key_file: str | None = None
    positionals: list[str] = []
    items = iter(args)
    for arg in items:
        if arg == KEY_FILE_OPTION:
            value = next(items, None)
            if value is None:
                raise _UsageError(f"Option {KEY_FILE_OPTION} needs a file name.")
            key_file = value
        elif arg.startswith(KEY_FILE_OPTION + "="):
            key_file = arg.split("=", 1)[1]
        else:
            positionals.append(arg)
    return key_file, positionals


def _decode_key(raw: bytes, origin: str) -> bytes:
    if len(raw) == KEY_LENGTH:
        return raw
    try:
        key = bytes.fromhex(raw.decode("ascii").strip())
    except (UnicodeDecodeError, ValueError) as exc:
        raise ValueError(f"Key from {origin} is neither raw nor hexadecimal.") from exc
    if len(key) != KEY_LENGTH:
        raise ValueError(f"Key from {origin} must be {KEY_LENGTH} bytes long.")
    return key


def _load_key(key_file: str | None) -> bytes:
    """Read the base key from a key file, or else from the environment."""
    if key_file is not None:
        try:
            with open(key_file, "rb") as handle:
                raw = handle.read()
        except OSError as exc:
            raise ValueError(f"Could not read key file {key_file}: {exc.strerror}") from exc
        return _decode_key(raw, key_file)
    value = os.environ.get(KEY_ENV_VAR)
    if value is None:
        raise ValueError(f"No key given: use {KEY_FILE_OPTION} or set {KEY_ENV_VAR}.")
    return _decode_key(value.encode("ascii", "replace"), KEY_ENV_VAR)


@contextlib.contextmanager
def _logging_to_stderr():
    previous = mlle_io.log_stream
    mlle_io.log_stream = sys.stderr
    try:
        yield
    finally:
        mlle_io.log_stream = previous


def _prepare(argv: Sequence[str] | None, usage: str, prog: str, counts: range):
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        key_file, positionals = _split_options(args)
    except _UsageError as exc:
        _err(f"{exc}\n")
        _err(usage.format(prog=prog))
        return None
    if len(positionals) not in counts:
        _err(usage.format(prog=prog))
        return None
    try:
        key = _load_key(key_file)
    except ValueError as exc:
        _err(f"{exc}\n")
        return None
    return key, positionals


def _remove(path: str) -> None:
    with contextlib.suppress(OSError):
        os.remove(path)


def encrypt_main(argv: Sequence[str] | None = None) -> int:
    """Encrypt one cleartext file; return the process exit status."""
    prepared = _prepare(argv, _ENCRYPT_USAGE, "semlakit-encrypt", range(2, 4))
    if prepared is None:
        return 1
    key, positionals = prepared

    with _logging_to_stderr():
        clear_path, encrypted = positionals[0], positionals[1]
        try:
            infile = open(clear_path, "rb")
        except OSError as exc:
            _err(
                f"Could not open file {clear_path} for reading. "
                f"Error message was: {exc.strerror}\n"
            )
            return 1

        with infile:
            if len(positionals) == 3:
                destdir = positionals[2]
                context = CryptoContext(destdir, key)
                pathdest = f"{destdir}/{encrypted}"
                # Load the key masks of the parent directories from their package files.
                try:
                    context.decrypt(encrypted, None)
                except (DecryptionError, MlleError):
                    _err("Error getting key masks from parent dirs\n")
                    return 2
                rel_path = encrypted[:-1]
            else:
                if encrypted.endswith("c"):
                    encrypted = encrypted[:-1]
                context = CryptoContext("", key)
                pathdest = encrypted
                cut = max(encrypted.rfind("/"), encrypted.rfind("\\"))
                rel_path = encrypted[cut + 1 :]

            try:
                outfile = open(pathdest, "wb")
            except OSError as exc:
                _err(
                    f"Could not open file {pathdest} for writing. "
                    f"Error message was: {exc.strerror}\n"
                )
                return 2

            result = 1
            with outfile:
                try:
                    encrypt(context, rel_path, infile, outfile)
                    result = 0
                except (EncryptionError, MlleError, ValueError):
                    _err(f"Encryption failed for file {positionals[1]}.\n")

    if result != 0:
        _remove(pathdest)
    return result


def decrypt_main(argv: Sequence[str] | None = None) -> int:
    """Decrypt one encrypted file below a base directory; return the exit status."""
    prepared = _prepare(argv, _DECRYPT_USAGE, "semlakit-decrypt", range(3, 4))
    if prepared is None:
        return 1
    key, (basedir, rel_path, clear_path) = prepared

    with _logging_to_stderr():
        context = CryptoContext(basedir, key)
        path = f"{basedir}/{rel_path}"

        infile = outfile = None
        try:
            infile = open(path, "rb")
        except OSError as exc:
            _err(f"Could not open file {path} for reading. Error message was: {exc.strerror}\n")
        try:
            outfile = open(clear_path, "wb")
        except OSError as exc:
            _err(
                f"Could not open file {clear_path} for writing. "
                f"Error message was: {exc.strerror}\n"
            )

        result = 1
        try:
            if infile is not None and outfile is not None:
                try:
                    data = infile.read(BUF_SIZE)
                    plain = context.decrypt(rel_path, data)
                    outfile.write(plain)
                    result = 0
                except (DecryptionError, MlleError, OSError, ValueError):
                    pass
                if result != 0:
                    _err(f"Decryption failed for file {basedir}.\n")
        finally:
            if infile is not None:
                infile.close()
            if outfile is not None:
                outfile.close()

    if outfile is not None and result != 0:
        _remove(clear_path)
    return result


def main(argv: Sequence[str] | None = None) -> int:
    """Run ``encrypt`` or ``decrypt`` according to the first argument."""
    args = list(sys.argv[1:] if argv is None else argv)
    if args and args[0] == "encrypt":
        return encrypt_main(args[1:])
    if args and args[0] == "decrypt":
        return decrypt_main(args[1:])
    _err("Usage: semlakit {encrypt|decrypt} ...\n")
    return 1
"""TLS helpers: RSA key handling, self-signed certificates and message I/O."""

from __future__ import annotations

import contextlib
import datetime
import os
import ssl
import tempfile
from enum import IntEnum
from typing import Protocol

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa as rsa_keys
from cryptography.x509.oid import NameOID

SSL_ERROR_BUF_LEN = 100
MSG_SIZE = 16384
CIPHER_LIST = "HIGH:!DSS:!aNULL@STRENGTH"
CERT_VALIDITY_SECONDS = 31536000
CERT_COUNTRY = "SE"
CERT_ORGANIZATION = "Modelon"

_ERROR_NAMES = {
    ssl.SSL_ERROR_NONE: "",
    ssl.SSL_ERROR_WANT_READ: "SSL_ERROR_WANT_READ",
    ssl.SSL_ERROR_WANT_WRITE: "SSL_ERROR_WANT_WRITE",
    ssl.SSL_ERROR_SYSCALL: "SSL_ERROR_SYSCALL",
    ssl.SSL_ERROR_SSL: "SSL_ERROR_SSL",
}


class Mode(IntEnum):
    """Which end of the connection a context is made for."""

    SERVER = 0
    CLIENT = 1


class ChannelError(Exception):
    """A key, certificate or TLS I/O operation failed."""

    def __init__(self, message: str, error_code: int = ssl.SSL_ERROR_NONE) -> None:
        super().__init__(message)
        self.error_code = error_code


class _Connection(Protocol):
    def write(self, data: bytes) -> int: ...

    def read(self, size: int) -> bytes: ...

    def pending(self) -> int: ...


def ssl_error_string(error_code: int, reason: str | None = None) -> str:
    """Describe an SSL error code, followed by the reason when one is known."""
    name = _ERROR_NAMES.get(error_code, "")
    if reason is None:
        return name
    return f"{name}. reason: {reason}"[: SSL_ERROR_BUF_LEN - 1]


def _as_bytes(data: str | bytes) -> bytes:
    return data.encode("latin-1") if isinstance(data, str) else bytes(data)


def get_rsa(private_key: str | bytes) -> rsa_keys.RSAPrivateKey:
    """Load an RSA private key from PEM text."""
    try:
        key = serialization.load_pem_private_key(_as_bytes(private_key), password=None)
    except (ValueError, TypeError) as exc:
        raise ChannelError(f"Could not read RSA private key: {exc}") from exc
    if not isinstance(key, rsa_keys.RSAPrivateKey):
        raise ChannelError("Private key is not an RSA key.")
    return key


def get_public_key(rsa: rsa_keys.RSAPrivateKey | None) -> str:
    """Return the public half of the key as a PEM 'PUBLIC KEY' block."""
    if rsa is None:
        raise ChannelError("No RSA key given.")
    pem = rsa.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return pem.decode("ascii")


def generate_x509(rsa: rsa_keys.RSAPrivateKey | None) -> x509.Certificate:
    """Create a self-signed certificate valid for one year from now."""
    if rsa is None:
        raise ChannelError("No RSA key given.")
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, CERT_COUNTRY),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, CERT_ORGANIZATION),
        ]
    )
    now = datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0)
    builder = (
        x509.CertificateBuilder()
        .serial_number(1)
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(seconds=CERT_VALIDITY_SECONDS))
        .public_key(rsa.public_key())
        .subject_name(name)
        .issuer_name(name)
    )
    try:
        return builder.sign(rsa, hashes.SHA1())
    except (ValueError, TypeError) as exc:
        raise ChannelError(f"Could not sign certificate: {exc}") from exc


def create_context(private_key: str | bytes, mode: Mode | int) -> ssl.SSLContext:
    """Build a TLS context for a client (Tool) or a server (LVE) holding the key."""
    mode = Mode(mode)
    if mode is Mode.CLIENT:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        # The client receives the server certificate but does not verify it.
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    else:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        # Ask the client for a certificate; it may choose not to send one.
        context.verify_mode = ssl.CERT_OPTIONAL

    try:
        context.set_ciphers(CIPHER_LIST)
    except ssl.SSLError as exc:
        raise ChannelError(f"Could not set cipher list: {exc}") from exc

    key = get_rsa(private_key)
    certificate = generate_x509(key)
    pem = certificate.public_bytes(serialization.Encoding.PEM) + key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )

    fd, path = tempfile.mkstemp(suffix=".pem")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(pem)
        context.load_cert_chain(path)
    except (ssl.SSLError, OSError) as exc:
        raise ChannelError(f"Could not use private key: {exc}") from exc
    finally:
        with contextlib.suppress(OSError):
            os.remove(path)
    return context


def _error_code(exc: BaseException) -> int:
    if isinstance(exc, ssl.SSLWantReadError):
        return ssl.SSL_ERROR_WANT_READ
    if isinstance(exc, ssl.SSLWantWriteError):
        return ssl.SSL_ERROR_WANT_WRITE
    if isinstance(exc, ssl.SSLZeroReturnError):
        return ssl.SSL_ERROR_ZERO_RETURN
    if isinstance(exc, ssl.SSLEOFError):
        return ssl.SSL_ERROR_EOF
    if isinstance(exc, ssl.SSLSyscallError):
        return ssl.SSL_ERROR_SYSCALL
    if isinstance(exc, ssl.SSLError):
        return ssl.SSL_ERROR_SSL
    return ssl.SSL_ERROR_SYSCALL


def _reason(exc: BaseException) -> str:
    if isinstance(exc, ssl.SSLError) and exc.reason:
        return str(exc.reason)
    return str(exc)


def write_message(conn: _Connection, message: str | bytes) -> int:
    """Write a whole message, retrying while the connection wants to write."""
    data = _as_bytes(message)
    while True:
        try:
            written = conn.write(data)
            break
        except ssl.SSLWantWriteError:
            continue
        except OSError as exc:
            code = _error_code(exc)
            raise ChannelError(ssl_error_string(code, _reason(exc)), code) from exc
    if written <= 0:
        raise ChannelError("Nothing was written.", ssl.SSL_ERROR_SYSCALL)
    return written


def read_message(conn: _Connection) -> bytes:
    """Read one message: everything available until nothing more is pending."""
    chunks: list[bytes] = []
    while True:
        try:
            chunk = conn.read(MSG_SIZE - 1)
        except (ssl.SSLWantReadError, ssl.SSLWantWriteError):
            continue
        except OSError as exc:
            code = _error_code(exc)
            raise ChannelError(ssl_error_string(code, _reason(exc)), code) from exc
        if not chunk:
            code = ssl.SSL_ERROR_ZERO_RETURN
            raise ChannelError("Connection closed by peer.", code)
        chunks.append(chunk)
        if not conn.pending():
            return b"".join(chunks)
"""File reading, debug log handling and framing of outgoing protocol messages."""

from __future__ import annotations

import os
import time
from typing import TextIO

from .errors import MlleError
from .protocol import CommandId, command_info
from .secure_channel import _Connection, write_message

NUMBER_MAX_LEN = 20
SIMPLE_FORM_BUFFER_SIZE = 20
NUMBER_FORM_BUFFER_SIZE = SIMPLE_FORM_BUFFER_SIZE + 1 + NUMBER_MAX_LEN
NUMBER_AND_LENGTH_FORM_BUFFER_SIZE = NUMBER_FORM_BUFFER_SIZE + 1 + NUMBER_MAX_LEN
MESSAGE_ERROR_BUFFER_SIZE = 100

# Debug messages are written here when it is set.
log_stream: TextIO | None = None


def open_log(envvar: str) -> TextIO | None:
    """Open the debug log named by an environment variable, if it is set."""
    global log_stream
    file_name = os.environ.get(envvar)
    if file_name is None:
        return None
    try:
        stream = open(file_name, "w", encoding="utf-8")
    except OSError:
        return None
    stream.write(f"Opening logfile at: {time.ctime()}\n\n")
    log_stream = stream
    return stream


def read_file(file_path: str | os.PathLike[str]) -> bytes:
    """Return the whole contents of a file; raise MlleError when it cannot be read."""
    path = os.fspath(file_path)
    try:
        handle = open(path, "rb")
    except OSError as exc:
        raise MlleError.formatted(
            1, 1, "Couldn't open file %s. The error message was: %s", path, exc.strerror
        ) from exc
    with handle:
        try:
            os.fstat(handle.fileno())
        except OSError as exc:
            raise MlleError.formatted(
                1,
                1,
                "Couldn't find file size for %s. The error message was: %s",
                path,
                exc.strerror,
            ) from exc
        try:
            return handle.read()
        except OSError as exc:
            raise MlleError.formatted(
                1,
                1,
                "I/O error while reading file %s. The error message was: %s",
                path,
                exc.strerror,
            ) from exc


def _as_bytes(data: str | bytes) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def _name(command_id: CommandId | int) -> str:
    return command_info(command_id).name


def send_simple_form(conn: _Connection, command_id: CommandId | int) -> int:
    """Send ``<COMMAND>\\n``."""
    return write_message(conn, f"{_name(command_id)}\n".encode("ascii"))


def send_number_form(conn: _Connection, command_id: CommandId | int, number: int) -> int:
    """Send ``<COMMAND> <NUMBER>\\n``."""
    return write_message(conn, f"{_name(command_id)} {int(number)}\n".encode("ascii"))


def send_length_form(conn: _Connection, command_id: CommandId | int, data: str | bytes) -> int:
    """Send ``<COMMAND> <LENGTH>\\n`` followed by the data."""
    payload = _as_bytes(data)
    header = f"{_name(command_id)} {len(payload)}\n".encode("ascii")
    return write_message(conn, header + payload)


def send_string(conn: _Connection, command_id: CommandId | int, string: str) -> int:
    """Send a string in length form."""
    return send_length_form(conn, command_id, string)


def send_number_and_length_form(
    conn: _Connection, command_id: CommandId | int, number: int, data: str | bytes
) -> int:
    """Send ``<COMMAND> <NUMBER> <LENGTH>\\n`` followed by the data."""
    payload = _as_bytes(data)
    header = f"{_name(command_id)} {int(number)} {len(payload)}\n".encode("ascii")
    return write_message(conn, header + payload)


def send_error(conn: _Connection, error_code: int, error_msg: str | bytes | None) -> int:
    """Send an ERROR command carrying a code and an optional message."""
    return send_number_and_length_form(
        conn, CommandId.ERROR, error_code, b"" if error_msg is None else error_msg
    )
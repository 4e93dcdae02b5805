"""Reading whole protocol commands, including their data parts, from a connection."""

from __future__ import annotations

from .errors import MlleError
from .protocol import Command, CommandParseError, MessageForm, command_info, parse_command
from .secure_channel import ChannelError, _Connection, read_message

SSL_RECORD_SIZE = 16400

_DATA_FORMS = (MessageForm.LENGTH, MessageForm.NUMBER_AND_LENGTH)


def extract_data(command: Command, buffer: bytes) -> int:
    """Store the part of buffer after the first newline as the command's data.

    Returns the number of data bytes found in the buffer; the stored data is
    limited to the command's length. Without a newline the data is cleared
    and 0 is returned.
    """
    command.data = None
    newline = buffer.find(b"\n")
    if newline < 0:
        return 0
    data_part = bytes(buffer[newline + 1 :])
    command.data = data_part[: command.length]
    return len(data_part)


def _read(conn: _Connection) -> bytes:
    try:
        return read_message(conn)
    except ChannelError as exc:
        raise MlleError(1, 1, str(exc)) from exc


def read_command(conn: _Connection) -> Command:
    """Read and parse one command, collecting all of its data; raise MlleError on failure."""
    message = _read(conn)
    if len(message) > SSL_RECORD_SIZE:
        raise MlleError(1, 1, "Message is larger than an SSL record.")

    # The last byte of the message is not part of the command line.
    try:
        command = parse_command(message[:-1])
    except CommandParseError as exc:
        raise MlleError(1, 1, exc.message) from exc

    if command_info(command.id).msg_form not in _DATA_FORMS:
        return command

    received = extract_data(command, message)
    if command.data is None:
        raise MlleError(1, 1, "End Of File.")

    data = bytearray(command.data)
    while received < command.length:
        chunk = _read(conn)
        data += chunk
        received += len(chunk)
    command.data = bytes(data[: command.length])
    return command
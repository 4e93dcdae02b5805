"""Command table and line-oriented command parser for the licensing protocol."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum

MAX_COMMAND_LINE_SIZE = 1023
MAX_TOKENS_PER_MSG = 3
MAX_CMD_LENGTH = 17


class MessageForm(IntEnum):
    UNDEFINED = 0
    SIMPLE = 1
    NUMBER = 2
    LENGTH = 3
    NUMBER_AND_LENGTH = 4

    @property
    def token_count(self) -> int:
        """Number of tokens a command line of this form holds."""
        return _TOKENS_FOR_FORM[self]

    @property
    def template(self) -> str:
        """Printf-style description of the expected form."""
        return _FORM_TEMPLATE[self]


_TOKENS_FOR_FORM = {
    MessageForm.UNDEFINED: 0,
    MessageForm.SIMPLE: 1,
    MessageForm.NUMBER: 2,
    MessageForm.LENGTH: 2,
    MessageForm.NUMBER_AND_LENGTH: MAX_TOKENS_PER_MSG,
}

_FORM_TEMPLATE = {
    MessageForm.UNDEFINED: "[This should never be used.]",
    MessageForm.SIMPLE: "%s",
    MessageForm.NUMBER: "%s <number>",
    MessageForm.LENGTH: "%s <length>",
    MessageForm.NUMBER_AND_LENGTH: "%s <number> <length>",
}


class CommandId(IntEnum):
    UNDEFINED = 0
    NOTSIMPLE = 1
    TOOLS = 2
    YES = 3
    VERSION = 4
    FEATURE = 5
    FILE = 6
    FILECONT = 7
    LIB = 8
    LICENSE = 9
    NO = 10
    RETURNFEATURE = 11
    RETURNLICENSE = 12
    TOOLLIST = 13
    ERROR = 14


class ProtocolErrorId(IntEnum):
    UNDEFINED = 0
    COMMAND_NOT_UNDERSTOOD = 1
    VERSION_TOO_LOW = 2
    LVE_NOT_LICENSING = 3
    FILE_NOT_FOUND = 4
    TOOL_NOT_ALLOWED = 5
    FILE_IO = 6
    LICENSE = 7
    OTHER = 8
    SSL = 9


class GrammarError(IntEnum):
    VALID_GRAMMAR = 0
    UNKNOWN_ERROR = 1
    NO_TOKENS = 2
    TOO_MANY_TOKENS = 3
    TOO_FEW_TOKENS = 4
    UNKNOWN_CMD = 5
    NOT_AN_INT = 6
    NEGATIVE_LENGTH = 7


@dataclass(frozen=True)
class CommandInfo:
    id: CommandId
    msg_form: MessageForm
    name: str


@dataclass
class Command:
    id: CommandId = CommandId.UNDEFINED
    number: int = 0
    length: int = 0
    data: bytes | None = None


class CommandParseError(ValueError):
    """A command line did not follow the protocol grammar."""

    def __init__(self, error: GrammarError, message: str) -> None:
        super().__init__(message)
        self.error = error
        self.message = message


_COMMANDS = (
    CommandInfo(CommandId.UNDEFINED, MessageForm.UNDEFINED, "[unknown_command]"),
    CommandInfo(CommandId.NOTSIMPLE, MessageForm.SIMPLE, "NOTSIMPLE"),
    CommandInfo(CommandId.TOOLS, MessageForm.SIMPLE, "TOOLS"),
    CommandInfo(CommandId.YES, MessageForm.SIMPLE, "YES"),
    CommandInfo(CommandId.VERSION, MessageForm.NUMBER, "VERSION"),
    CommandInfo(CommandId.FEATURE, MessageForm.LENGTH, "FEATURE"),
    CommandInfo(CommandId.FILE, MessageForm.LENGTH, "FILE"),
    CommandInfo(CommandId.FILECONT, MessageForm.LENGTH, "FILECONT"),
    CommandInfo(CommandId.LIB, MessageForm.LENGTH, "LIB"),
    CommandInfo(CommandId.LICENSE, MessageForm.LENGTH, "LICENSE"),
    CommandInfo(CommandId.NO, MessageForm.LENGTH, "NO"),
    CommandInfo(CommandId.RETURNFEATURE, MessageForm.LENGTH, "RETURNFEATURE"),
    CommandInfo(CommandId.RETURNLICENSE, MessageForm.LENGTH, "RETURNLICENSE"),
    CommandInfo(CommandId.TOOLLIST, MessageForm.LENGTH, "TOOLLIST"),
    CommandInfo(CommandId.ERROR, MessageForm.NUMBER_AND_LENGTH, "ERROR"),
)

_BY_ID = {info.id: info for info in _COMMANDS}
_BY_NAME = {info.name: info for info in _COMMANDS if info.id is not CommandId.UNDEFINED}

_INT_PATTERN = re.compile(r"\s*([+-]?\d+)")


def command_info(command_id: CommandId | int) -> CommandInfo:
    """Return the table entry for a command id."""
    return _BY_ID[CommandId(command_id)]


def lookup_command(name: str) -> CommandInfo | None:
    """Return the table entry whose name matches exactly, or None."""
    return _BY_NAME.get(name)


def _as_text(text: str | bytes | None) -> str:
    if text is None:
        return ""
    if isinstance(text, (bytes, bytearray)):
        return bytes(text).decode("latin-1")
    return text


def _split(text: str | bytes | None) -> tuple[list[str], bool]:
    """Tokens of the first non-empty line, at most the maximum, and an overflow flag."""
    first_line = next((line for line in _as_text(text).split("\n") if line), "")
    tokens = [token for token in first_line.split(" ") if token]
    if len(tokens) > MAX_TOKENS_PER_MSG:
        return tokens[:MAX_TOKENS_PER_MSG], True
    return tokens, False


def tokenize(text: str | bytes | None) -> list[str]:
    """Split the command line (up to the first newline) into space-separated tokens."""
    tokens, too_many = _split(text)
    if too_many:
        raise CommandParseError(GrammarError.TOO_MANY_TOKENS, "Too many tokens in message.")
    return tokens


def _parse_int(token: str, cmd: str) -> int:
    match = _INT_PATTERN.match(token)
    if match is None:
        raise CommandParseError(
            GrammarError.NOT_AN_INT,
            f"Parse error. Argument {token} to command {cmd} is not an integer.",
        )
    return int(match.group(1))


def parse_command(text: str | bytes | None) -> Command:
    """Parse a command line into a Command; raise CommandParseError on bad grammar."""
    tokens, too_many = _split(text)
    if not tokens:
        raise CommandParseError(GrammarError.NO_TOKENS, "No tokens in message.")

    name = tokens[0]
    info = lookup_command(name)
    if info is None:
        raise CommandParseError(GrammarError.UNKNOWN_CMD, f"Unknown command {name}.")

    form = info.msg_form
    expected = form.token_count
    if too_many or len(tokens) != expected:
        many = too_many or len(tokens) > expected
        raise CommandParseError(
            GrammarError.TOO_MANY_TOKENS if many else GrammarError.TOO_FEW_TOKENS,
            f"Too {'many' if many else 'few'} arguments for command {name}. "
            f"Expected form is {form.template % name}",
        )

    if form is MessageForm.SIMPLE:
        return Command(id=info.id)

    first = _parse_int(tokens[1], name)
    if form is MessageForm.NUMBER:
        return Command(id=info.id, number=first)

    if form is MessageForm.NUMBER_AND_LENGTH:
        number, length = first, _parse_int(tokens[2], name)
    else:
        number, length = 0, first

    if length < 0:
        raise CommandParseError(
            GrammarError.NEGATIVE_LENGTH,
            f"Parse error. Length argument {length} to command {name} is negative.",
        )
    return Command(id=info.id, number=number, length=length)
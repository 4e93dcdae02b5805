"""Error type carrying a domain, a code, a message and an optional cause."""

from __future__ import annotations

DEFAULT_MSG_SIZE = 2048
LONG_FILE_NAME_MAX = 4096


class MlleError(Exception):
    """An error identified by a numeric domain and code, with a text message."""

    def __init__(
        self,
        domain: int,
        code: int,
        message: str | None = None,
        cause: MlleError | None = None,
    ) -> None:
        super().__init__(message if message is not None else "")
        self.domain = domain
        self.code = code
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @classmethod
    def formatted(cls, domain: int, code: int, fmt: str, *args: object) -> MlleError:
        """Build an error whose message is ``fmt % args``, limited in length."""
        message = fmt % args if args else fmt
        return cls(domain, code, message[: DEFAULT_MSG_SIZE - 1])

    def __str__(self) -> str:
        return self.message if self.message is not None else ""

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(domain={self.domain!r}, code={self.code!r}, "
            f"message={self.message!r})"
        )
# Purpose: Error kinds and the Success/Failure outcome returned by the payload parser.

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    INVALID_FORMAT = "InvalidFormat"
    PARSE_ERROR = "ParseError"
    LENGTH_EXCEEDED = "LengthExceeded"


class TLVError(Exception):
    """Hard tokenizer failure. Carries the triples scanned before the failure."""

    def __init__(self, kind, message, offset=None, triples=(), state=None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.offset = offset
        self.triples = tuple(triples)
        self.state = state

    def to_failure(self):
        return Failure(self.kind, self.message, offset=self.offset)


@dataclass(frozen=True)
class Success:
    value: object
    corrupted: bool = False

    @property
    def ok(self):
        return True


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    offset: Optional[int] = None
    missing_fields: tuple = field(default=())

    @property
    def ok(self):
        return False

    def __str__(self):
        location = f" (byte offset {self.offset})" if self.offset is not None else ""
        return f"{self.kind.value}: {self.message}{location}"

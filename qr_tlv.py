# Purpose: Scan EMV QR TLV text into (id, length, value) triples.
# Lengths are UTF-8 byte counts; the read cursor moves in characters.

import logging
import re
from dataclasses import dataclass
from enum import Enum

from qr_errors import ErrorKind, TLVError

log = logging.getLogger(__name__)

# --- CONFIGURATION ---
HEADER_SIZE = 4
MAX_VALUE_BYTES = 99

# Below this share of the declared size a truncated *first* field is rejected
# outright; at or above it the prefix is kept and flagged as corrupted.
# This is a tunable policy value, not something the wire format requires.
TRUNCATION_THRESHOLD = 0.5

TWO_DIGITS = re.compile(r"^[0-9]{2}$")


class ScanState(Enum):
    SCANNING = "scanning"
    DONE = "done"
    TRUNCATED = "truncated"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class Triple:
    id: str
    length: int
    value: str

    def encode(self):
        return f"{self.id}{self.length:02}{self.value}"


@dataclass(frozen=True)
class Tokenized:
    triples: tuple
    corrupted: bool
    state: ScanState = ScanState.DONE


def _is_salvageable(triples, available, declared):
    """A short read is soft when structure already exists or enough of it arrived."""
    if triples:
        return True
    return available / declared >= TRUNCATION_THRESHOLD


def tokenize(payload):
    """Parses EMV TLV text. Returns Tokenized or raises TLVError on a hard failure."""
    if not payload:
        raise TLVError(ErrorKind.INVALID_FORMAT, "Input string is empty", offset=0, state=ScanState.MALFORMED)

    try:
        data = payload.encode("utf-8")
    except UnicodeEncodeError as e:
        offset = len(payload[:e.start].encode("utf-8"))
        raise TLVError(
            ErrorKind.INVALID_FORMAT,
            f"Character at byte {offset} cannot be encoded as UTF-8",
            offset=offset,
            state=ScanState.MALFORMED,
        ) from e

    triples = []
    state = ScanState.SCANNING
    pos = 0   # character cursor into payload
    bpos = 0  # byte cursor into data

    while state is ScanState.SCANNING:
        if pos >= len(payload):
            state = ScanState.DONE
            break

        remaining = len(payload) - pos
        tag = payload[pos:pos + 2]
        if len(tag) == 2 and not TWO_DIGITS.match(tag):
            raise TLVError(
                ErrorKind.INVALID_FORMAT,
                f'Invalid field ID at byte {bpos}: expected 2 digits, got "{tag}"',
                offset=bpos,
                triples=triples,
                state=ScanState.MALFORMED,
            )

        if remaining < HEADER_SIZE:
            if not _is_salvageable(triples, remaining, HEADER_SIZE):
                raise TLVError(
                    ErrorKind.PARSE_ERROR,
                    f"Incomplete field header: {remaining} of {HEADER_SIZE} characters available",
                    offset=bpos,
                    triples=triples,
                    state=ScanState.TRUNCATED,
                )
            log.debug("Header cut off at byte %d, keeping %d field(s)", bpos, len(triples))
            state = ScanState.TRUNCATED
            break

        length_str = payload[pos + 2:pos + 4]
        if not TWO_DIGITS.match(length_str):
            raise TLVError(
                ErrorKind.INVALID_FORMAT,
                f'Invalid length at byte {bpos + 2}: expected 2 digits, got "{length_str}"',
                offset=bpos + 2,
                triples=triples,
                state=ScanState.MALFORMED,
            )
        length = int(length_str)
        pos += HEADER_SIZE
        bpos += HEADER_SIZE

        available = len(data) - bpos
        if length > available:
            if not _is_salvageable(triples, available, length):
                raise TLVError(
                    ErrorKind.PARSE_ERROR,
                    f"Incomplete field value: declared length {length} but only {available} bytes available",
                    offset=bpos,
                    triples=triples,
                    state=ScanState.TRUNCATED,
                )
            log.debug("Field %s declares %d bytes, only %d left", tag, length, available)
            state = ScanState.TRUNCATED
            break

        try:
            value = data[bpos:bpos + length].decode("utf-8")
        except UnicodeDecodeError:
            # The declared byte count ends inside a multi-byte character.
            log.debug("Field %s length %d splits a multi-byte character at byte %d", tag, length, bpos)
            state = ScanState.TRUNCATED
            break

        triples.append(Triple(tag, length, value))
        pos += len(value)
        bpos += length

    return Tokenized(tuple(triples), state is ScanState.TRUNCATED, state)


def encode_triple(tag, value):
    """Serializes one TLV field, counting the value in UTF-8 bytes."""
    if not TWO_DIGITS.match(tag):
        raise ValueError(f"Field ID must be 2 digits, got {tag!r}")
    size = len(value.encode("utf-8"))
    if size > MAX_VALUE_BYTES:
        raise ValueError(f"Field {tag} value is {size} bytes (max {MAX_VALUE_BYTES})")
    return f"{tag}{size:02}{value}"


def build_payload(fields):
    """Joins (tag, value) pairs into TLV text. Nested values must already be encoded."""
    return "".join(encode_triple(tag, value) for tag, value in fields)

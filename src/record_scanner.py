"""
Record boundary scanning for quoted CSV.

A logical record ends at the first newline that is not inside a quoted
field. A doubled quote inside a field is an escaped literal and keeps the
field open. An unterminated quoted field simply runs to end-of-input.
"""

from typing import BinaryIO, Iterator, Optional, Union

from split_errors import ConfigurationError

LINE_TERMINATOR = b"\n"
DEFAULT_BUFFER_SIZE = 1 << 20

_NEWLINE = LINE_TERMINATOR[0]


def normalize_quote_char(value: Union[str, bytes, int, None]) -> bytes:
    """Return the quote character as exactly one byte."""
    if value is None or value == "" or value == b"":
        raise ConfigurationError("missing quote character")
    if isinstance(value, int):
        if not 0 <= value < 256:
            raise ConfigurationError(f"quote character out of byte range: {value!r}")
        value = bytes([value])
    elif isinstance(value, str):
        value = value.encode("utf-8")
    if len(value) != 1:
        raise ConfigurationError(f"quote character must be a single byte, got {value!r}")
    if value == LINE_TERMINATOR:
        raise ConfigurationError("quote character cannot be the line terminator")
    return value


class ScanState:
    """Quote tracking and byte count for the record currently being measured."""

    __slots__ = ("quote", "in_quote", "pending_close", "consumed")

    def __init__(self, quote: int):
        self.quote = quote
        self.in_quote = False
        # a quote was seen inside a field; the next byte decides if it was ""
        self.pending_close = False
        self.consumed = 0

    def advance(self, buf: bytes, start: int = 0) -> int:
        """
        Consume bytes of buf from start.

        Returns the index just past the record terminator, or -1 when the
        buffer is exhausted before the record ends.
        """
        quote = self.quote
        i = start
        n = len(buf)
        # next newline at or after i; -2 until searched, -1 when none left in buf
        nl = -2

        while i < n:
            if self.pending_close:
                self.pending_close = False
                if buf[i] == quote:
                    i += 1
                    continue
                self.in_quote = False

            if self.in_quote:
                q = buf.find(quote, i)
                if q == -1:
                    i = n
                    break
                i = q + 1
                self.pending_close = True
                continue

            if nl == -2 or 0 <= nl < i:
                nl = buf.find(_NEWLINE, i)
            if nl == -1:
                q = buf.find(quote, i)
            else:
                q = buf.find(quote, i, nl)
            if nl != -1 and q == -1:
                end = nl + 1
                self.consumed += end - start
                return end
            if q == -1:
                i = n
                break
            self.in_quote = True
            i = q + 1

        self.consumed += i - start
        return -1


def measure_next_record(stream: BinaryIO, quote_char) -> Optional[int]:
    """
    Measure the next logical record of stream in bytes, terminator included.

    Reads one byte at a time and never past the record boundary, so the
    stream is left positioned at the start of the following record.
    Returns None when the stream is exhausted before any byte is read.
    """
    state = ScanState(normalize_quote_char(quote_char)[0])
    while True:
        b = stream.read(1)
        if not b:
            return state.consumed or None
        if state.advance(b) != -1:
            return state.consumed


def iter_record_lengths(
    stream: BinaryIO,
    quote_char,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
) -> Iterator[int]:
    """
    Yield the byte length of every logical record left in stream, in order.

    Reads in buffered chunks, so the stream position is unspecified until the
    iterator is exhausted.
    """
    quote = normalize_quote_char(quote_char)[0]
    if buffer_size < 1:
        raise ValueError("buffer_size must be >= 1")

    state = ScanState(quote)
    while True:
        buf = stream.read(buffer_size)
        if not buf:
            break
        pos = 0
        while True:
            pos = state.advance(buf, pos)
            if pos == -1:
                break
            yield state.consumed
            state = ScanState(quote)
            if pos == len(buf):
                break

    if state.consumed:
        yield state.consumed

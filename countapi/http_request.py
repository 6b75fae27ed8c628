"""
Responsibility: read one request from a raw byte stream and turn it into either a
ParsedRequest (GET query string or POST body) or a RejectedRequest (any other method).

The stream is read line by line with no lookahead, so it works on sockets that never
signal EOF. Nothing here is fatal: malformed input degrades to an empty query string
or body. The only failure is the stream ending before the request line, or before the
promised body, arrives (IncompleteRequest).
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Dict, Final, FrozenSet, Optional

QUERY_METHODS: Final[FrozenSet[str]] = frozenset({"GET"})
BODY_METHODS: Final[FrozenSet[str]] = frozenset({"POST"})
# Same decoding os.environ applies, so both bindings see the same method string
HEADER_ENCODING: Final[str] = "utf-8"
HEADER_ERRORS: Final[str] = "surrogateescape"

CONTENT_LENGTH_PATTERN: re.Pattern = re.compile(r"^\s*([0-9]+)\s*$")


class IncompleteRequest(RuntimeError):
    """The stream closed before a full request could be read. No response is owed."""


class ReaderState(Enum):
    START = "start"
    READ_QUERY = "read_query"
    READ_HEADERS = "read_headers"
    READ_BODY = "read_body"
    DONE = "done"
    REJECTED = "rejected"


TERMINAL_STATES: Final[FrozenSet[ReaderState]] = frozenset({ReaderState.DONE, ReaderState.REJECTED})


class BodyFraming(Enum):
    """
    LINE accumulates whole lines until Content-Length is reached or passed, so the body
    may include up to one line past the declared length.
    EXACT stops at exactly Content-Length bytes.
    """
    LINE = "line"
    EXACT = "exact"


@dataclass
class HttpOutcome:
    """
    Common result of reading a request
    """
    method: str


@dataclass
class ParsedRequest(HttpOutcome):
    """
    A GET or POST request. query_string is set iff is_body_method is False, body iff True.
    """
    is_body_method: bool
    query_string: Optional[str] = None
    body: Optional[bytes] = None


@dataclass
class RejectedRequest(HttpOutcome):
    """
    Any method other than GET/POST, with the method token exactly as received
    """


def extract_method(request_line: str) -> str:
    return request_line.split(" ", maxsplit=1)[0]


def classify_method(method: str) -> Optional[str]:
    """Returns the normalized method name if it is served, otherwise None."""
    normalized = method.upper()
    if normalized in QUERY_METHODS or normalized in BODY_METHODS:
        return normalized
    return None


def extract_query_string(request_line: str) -> str:
    # Everything after the first '?' up to the space before the protocol version
    if "?" not in request_line:
        return ""
    return request_line.split("?", maxsplit=1)[1].split(" ", maxsplit=1)[0]


def parse_content_length(value: str) -> int:
    match = CONTENT_LENGTH_PATTERN.match(value)
    if match is None:
        return 0
    return int(match.group(1))


def _strip_terminator(line: bytes) -> str:
    return line.rstrip(b"\r\n").decode(HEADER_ENCODING, HEADER_ERRORS)


class RequestReader:
    """
    Explicit state machine over a binary stream.

        START -> REJECTED
        START -> READ_QUERY -> DONE
        START -> READ_HEADERS -> READ_BODY -> DONE
        START -> READ_HEADERS -> DONE

    Each call to step() performs one transition. READ_HEADERS consumes one header line
    per step and READ_BODY one line (or one read() in EXACT framing) per step, staying
    put until its phase is over.
    """

    def __init__(self, stream: BinaryIO, framing: BodyFraming = BodyFraming.LINE):
        self.stream = stream
        self.framing = framing
        self.state = ReaderState.START
        self.request_line = ""
        self.method = ""
        self.headers: Dict[str, str] = {}
        self.content_length = 0
        self.outcome: Optional[HttpOutcome] = None
        self._body = bytearray()

    def step(self) -> ReaderState:
        if self.state is ReaderState.START:
            self._read_request_line()
        elif self.state is ReaderState.READ_QUERY:
            self._read_query()
        elif self.state is ReaderState.READ_HEADERS:
            self._read_header_line()
        elif self.state is ReaderState.READ_BODY:
            self._read_body_chunk()

        return self.state

    def read(self) -> HttpOutcome:
        try:
            while self.state not in TERMINAL_STATES:
                self.step()
        finally:
            # The body buffer belongs to this request only
            self._body = bytearray()

        if self.outcome is None:
            raise RuntimeError(f"Reader stopped in non-terminal state {self.state}")
        return self.outcome

    def _read_request_line(self) -> None:
        line = self.stream.readline()
        if line == b"":
            raise IncompleteRequest("Connection closed before the request line")

        self.request_line = _strip_terminator(line)
        self.method = extract_method(self.request_line)

        normalized = classify_method(self.method)
        if normalized is None:
            # Stop here, the rest of the stream is never looked at
            self.outcome = RejectedRequest(method=self.method)
            self.state = ReaderState.REJECTED
        elif normalized in BODY_METHODS:
            self.method = normalized
            self.state = ReaderState.READ_HEADERS
        else:
            self.method = normalized
            self.state = ReaderState.READ_QUERY

    def _read_query(self) -> None:
        # Headers of a GET request are left unread
        self.outcome = ParsedRequest(
            method=self.method,
            is_body_method=False,
            query_string=extract_query_string(self.request_line)
        )
        self.state = ReaderState.DONE

    def _read_header_line(self) -> None:
        line = self.stream.readline()
        if line == b"":
            if self.content_length == 0:
                self._finish_body()
                return
            raise IncompleteRequest("Connection closed inside the header section")

        field = _strip_terminator(line)

        # A blank line ends the headers. So does any line without a colon.
        if ":" not in field:
            if self.content_length == 0:
                self._finish_body()
            else:
                self.state = ReaderState.READ_BODY
            return

        key, value = field.split(":", maxsplit=1)
        key = key.strip().lower()
        self.headers[key] = value.strip()

        if key == "content-length":
            self.content_length = parse_content_length(value)

    def _read_body_chunk(self) -> None:
        if self.framing is BodyFraming.EXACT:
            chunk = self.stream.read(self.content_length - len(self._body))
        else:
            chunk = self.stream.readline()

        if not chunk:
            raise IncompleteRequest(
                f"Connection closed after {len(self._body)} of {self.content_length} body bytes"
            )

        self._body += chunk
        if len(self._body) >= self.content_length:
            self._finish_body()

    def _finish_body(self) -> None:
        self.outcome = ParsedRequest(
            method=self.method,
            is_body_method=True,
            body=bytes(self._body)
        )
        self.state = ReaderState.DONE


def read_request(stream: BinaryIO, framing: BodyFraming = BodyFraming.LINE) -> HttpOutcome:
    return RequestReader(stream, framing).read()

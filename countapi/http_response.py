"""
Responsibility: compute the JSON summary for a request and serialize it as either a full
HTTP/1.1 response or a CGI-style response with a Status header.

Both forms share one JSON body, so equivalent requests get byte-identical payloads.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Final, Optional

from countapi.config import HTTP_VERSION
from countapi.http_request import HttpOutcome, ParsedRequest, RejectedRequest

CONTENT_TYPE: Final[str] = "application/json"
NOT_ALLOWED_MSG: Final[str] = "Not allowed"
REASON_PHRASES: Final[Dict[int, str]] = {
    200: "OK",
    405: "Method Not Allowed",
}


@dataclass
class ResponsePayload:
    status_code: int
    status_text: str
    json_body: str
    content_type: str = CONTENT_TYPE

    def _serialize(self, first_line: str) -> bytes:
        response = f"{first_line}\r\n"
        response += f"Content-type: {self.content_type}\r\n"
        response += "\r\n"
        response += self.json_body
        return response.encode("utf-8")

    def serialize_http(self) -> bytes:
        return self._serialize(f"{HTTP_VERSION} {self.status_code} {self.status_text}")

    def serialize_cgi(self) -> bytes:
        # The front-end server turns this header into its own status line
        return self._serialize(f"Status: {self.status_code} {self.status_text}")


def count_params(query_string: Optional[str]) -> int:
    """Number of '=' in the raw query string. No decoding, no de-duplication."""
    if not query_string:
        return 0
    return query_string.count("=")


def count_keys(body: Optional[bytes]) -> int:
    """Top-level keys of a JSON object body. Anything else, including invalid JSON, counts as 0."""
    if not body:
        return 0

    try:
        document = json.loads(body)
    except (ValueError, RecursionError):
        # UnicodeDecodeError and JSONDecodeError are both ValueErrors
        return 0

    if not isinstance(document, dict):
        return 0

    return len(document)


def _make_payload(status_code: int, content: Dict[str, Any]) -> ResponsePayload:
    return ResponsePayload(
        status_code=status_code,
        status_text=REASON_PHRASES[status_code],
        json_body=json.dumps(content)
    )


def summarize(outcome: HttpOutcome) -> ResponsePayload:
    if isinstance(outcome, RejectedRequest):
        return _make_payload(405, {"method": outcome.method, "msg": NOT_ALLOWED_MSG})

    if not isinstance(outcome, ParsedRequest):
        raise TypeError(f"Cannot summarize {type(outcome).__name__}")

    if outcome.is_body_method:
        return _make_payload(200, {"method": outcome.method, "num_keys": count_keys(outcome.body)})

    return _make_payload(200, {"method": outcome.method, "num_params": count_params(outcome.query_string)})

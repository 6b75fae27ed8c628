"""
Pre-parsed binding: the front-end web server has already framed the request and passes
the method and query string as CGI variables, with the body on stdin.
"""

import sys
from typing import BinaryIO, Mapping

from countapi.http_request import BODY_METHODS, HttpOutcome, ParsedRequest, RejectedRequest, classify_method
from countapi.http_response import summarize


def outcome_from_environ(environ: Mapping[str, str], instream: BinaryIO) -> HttpOutcome:
    method = environ.get("REQUEST_METHOD", "")
    normalized = classify_method(method)

    if normalized is None:
        return RejectedRequest(method=method)

    if normalized in BODY_METHODS:
        # The server closes stdin after the body
        return ParsedRequest(method=normalized, is_body_method=True, body=instream.read())

    return ParsedRequest(
        method=normalized,
        is_body_method=False,
        query_string=environ.get("QUERY_STRING", "")
    )


def handle_cgi(environ: Mapping[str, str], instream: BinaryIO, outstream: BinaryIO) -> None:
    outcome = outcome_from_environ(environ, instream)
    response = summarize(outcome)

    print(f"CGI {outcome.method!r} -> {response.status_code}", file=sys.stderr)

    outstream.write(response.serialize_cgi())
    outstream.flush()

import argparse
import os
import socket
import sys
import threading
from typing import BinaryIO, List, Optional

from countapi.cgi_handler import handle_cgi
from countapi.config import BODY_FRAMING, CONNECTION_TIMEOUT, HOST, LISTEN_BACKLOG, PORT, apply_process_defaults
from countapi.http_request import BodyFraming, IncompleteRequest, read_request
from countapi.http_response import summarize


def log(message: str) -> None:
    # stdout is the response channel in stream and cgi modes
    print(message, file=sys.stderr)


def serve_stream(instream: BinaryIO, outstream: BinaryIO, framing: BodyFraming = BodyFraming.LINE) -> bool:
    """
    Handle exactly one request on an already connected stream pair.

    Returns False when the stream ended before a full request arrived, in which case
    nothing is written.
    """
    try:
        outcome = read_request(instream, framing)
    except IncompleteRequest as e:
        log(f"Incomplete request, no response sent: {e}")
        return False

    response = summarize(outcome)
    log(f"{outcome.method!r} -> {response.status_code} {response.status_text}")

    outstream.write(response.serialize_http())
    outstream.flush()
    return True


def handle_connection(client_socket: socket.socket, client_address, framing: BodyFraming = BodyFraming.LINE) -> None:
    log(f"\nConnection from {client_address}")

    try:
        client_socket.settimeout(CONNECTION_TIMEOUT)
        with client_socket.makefile("rb") as instream, client_socket.makefile("wb") as outstream:
            serve_stream(instream, outstream, framing)
    except OSError as e:
        log(f"Error handling request: {e}")
    finally:
        client_socket.close()


def run_server(host: str = HOST, port: int = PORT, framing: BodyFraming = BodyFraming.LINE) -> None:
    # Create a TCP socket
    server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server_socket.bind((host, port))
    server_socket.listen(LISTEN_BACKLOG)

    log(f"Server listening on http://{host}:{port}")

    try:
        while True:
            client_socket, client_address = server_socket.accept()
            # One thread per connection, one request per connection. Nothing is shared between them.
            incoming_thread = threading.Thread(
                target=handle_connection,
                args=(client_socket, client_address, framing)
            )
            incoming_thread.start()

    except KeyboardInterrupt:
        log("\n\nShutting down server...")
    finally:
        server_socket.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Answer GET/POST requests with a JSON count of params or keys")
    parser.add_argument("mode", nargs="?", choices=["serve", "stream", "cgi"], default="serve",
                        help="serve: TCP listener, stream: one request on stdin/stdout, cgi: pre-parsed CGI request")
    parser.add_argument("--host", default=HOST, help="Address to bind in serve mode")
    parser.add_argument("--port", type=int, default=PORT, help="Port to bind in serve mode")
    parser.add_argument("--framing", choices=[f.value for f in BodyFraming], default=BODY_FRAMING,
                        help="line: stop at the first line reaching Content-Length, exact: stop at Content-Length bytes")
    args = parser.parse_args(argv)

    apply_process_defaults()
    framing = BodyFraming(args.framing)

    if args.mode == "cgi":
        handle_cgi(os.environ, sys.stdin.buffer, sys.stdout.buffer)
    elif args.mode == "stream":
        serve_stream(sys.stdin.buffer, sys.stdout.buffer, framing)
    else:
        run_server(args.host, args.port, framing)

    return 0


if __name__ == "__main__":
    sys.exit(main())

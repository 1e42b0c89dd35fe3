"""
Local OAuth callback listener.

After the user grants access in the browser, the accounts service
redirects to http://127.0.0.1:<port>/callback?code=<CODE>&state=...
This module runs the tiny TCP server receiving that redirect.

Protocol (one connection at a time):
    1. Read at most 2048 bytes.
    2. The request line must be "GET /callback?code=<CODE>[&...] HTTP/1.1".
    3. <CODE> runs up to the first '&' (or end of path) and must be
       non-empty and made of [0-9A-Za-z_-] only.
    4. Valid code: TokenStore.authorize(code); 200 on success,
       401 with the error message if the exchange fails.
    5. Anything else: 400, and the token store is not touched.

The listener binds the first free port in [8000, 8010] on 127.0.0.1 and
pushes http://127.0.0.1:<port>/callback into the token store as the
redirect URI. It never stops on bad input; only stop() ends it.
"""

import html
import re
import socketserver
import threading
from typing import Protocol

from spot_browser.core.exceptions import ListenerError
from spot_browser.core.logger import get_logger

logger = get_logger(__name__)


HOST = "127.0.0.1"
PORT_RANGE = (8000, 8010)
MAX_REQUEST_BYTES = 2048
READ_TIMEOUT = 5.0

CALLBACK_PREFIX = "/callback?code="
_CODE_RE = re.compile(r"[0-9A-Za-z_-]+")

RESPONSE_OK = "<html><body><h1>Login successful!</h1><script>window.close();</script></body></html>"
RESPONSE_BAD_REQUEST = "<html><body><h1>Bad request!</h1></body></html>"


class CodeReceiver(Protocol):
    """The part of TokenStore the listener needs."""

    def set_redirect_uri(self, url: str) -> None: ...

    def authorize(self, code: str) -> None: ...


def parse_callback_request(data: bytes) -> str | None:
    """
    Extract the authorization code from a raw HTTP request.

    Args:
        data: Bytes read from the socket (at most MAX_REQUEST_BYTES).

    Returns:
        The code, or None when the request is malformed in any way.

    Example:
        >>> parse_callback_request(b"GET /callback?code=ABC&state=x HTTP/1.1\\r\\n\\r\\n")
        'ABC'
    """
    text = data[:MAX_REQUEST_BYTES].decode("utf-8", errors="replace")
    request_line = text.split("\r\n", 1)[0].split("\n", 1)[0]

    if not request_line.startswith("GET ") or not request_line.endswith(" HTTP/1.1"):
        return None

    parts = request_line.split(" ")
    if len(parts) != 3:
        return None
    path = parts[1]

    if not path.startswith(CALLBACK_PREFIX):
        return None

    code = path[len(CALLBACK_PREFIX):].split("&", 1)[0]
    if not _CODE_RE.fullmatch(code):
        return None
    return code


def _http_response(status: str, body: str) -> bytes:
    payload = body.encode("utf-8")
    head = (
        f"HTTP/1.1 {status}\r\n"
        "Content-Type: text/html; charset=utf-8\r\n"
        f"Content-Length: {len(payload)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    return head.encode("ascii") + payload


class _CallbackHandler(socketserver.BaseRequestHandler):
    """Handles a single callback connection."""

    server: "_CallbackServer"

    def handle(self) -> None:
        self.request.settimeout(READ_TIMEOUT)
        try:
            data = self.request.recv(MAX_REQUEST_BYTES)
        except OSError as e:
            logger.warning(f"Failed to read OAuth callback request: {e}")
            return

        code = parse_callback_request(data)
        if code is None:
            logger.warning("Malformed OAuth callback request")
            self._send(_http_response("400 BAD REQUEST", RESPONSE_BAD_REQUEST))
            return

        logger.info("OAuth code received")
        try:
            self.server.receiver.authorize(code)
        except Exception as e:
            logger.error(f"Authorization with callback code failed: {e}")
            body = f"<html><body><h1>Login error: {html.escape(str(e))}</h1></body></html>"
            self._send(_http_response("401 UNAUTHORIZED", body))
            return

        self.server.codes_received += 1
        self._send(_http_response("200 OK", RESPONSE_OK))

    def _send(self, response: bytes) -> None:
        try:
            self.request.sendall(response)
        except OSError as e:
            logger.warning(f"Failed to answer OAuth callback: {e}")


class _CallbackServer(socketserver.TCPServer):
    allow_reuse_address = False

    def __init__(self, address: tuple[str, int], receiver: CodeReceiver) -> None:
        super().__init__(address, _CallbackHandler)
        self.receiver = receiver
        self.codes_received = 0

    def handle_error(self, request, client_address) -> None:
        logger.error(f"Unexpected error serving OAuth callback from {client_address}", exc_info=True)


class OAuthCallbackListener:
    """
    Owns the callback server and its serving thread.

    Args:
        receiver: Usually the TokenStore.
        host: Interface to bind.
        port_range: Inclusive (low, high) ports tried in order.

    Example:
        listener = OAuthCallbackListener(token_store)
        listener.start()
        url = token_store.configure(client_id, client_secret)
        ...
        listener.stop()
    """

    def __init__(
        self,
        receiver: CodeReceiver,
        host: str = HOST,
        port_range: tuple[int, int] = PORT_RANGE
    ) -> None:
        self._receiver = receiver
        self._host = host
        self._port_range = port_range
        self._server: _CallbackServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int | None:
        return self._server.server_address[1] if self._server else None

    @property
    def redirect_uri(self) -> str | None:
        return f"http://{self._host}:{self.port}/callback" if self._server else None

    @property
    def codes_received(self) -> int:
        return self._server.codes_received if self._server else 0

    def bind(self) -> str:
        """
        Bind the first free port in the range and publish the redirect URI.

        Returns:
            The redirect URI.

        Raises:
            ListenerError: If every port in the range is taken.
        """
        low, high = self._port_range
        last_error: OSError | None = None
        for port in range(low, high + 1):
            try:
                self._server = _CallbackServer((self._host, port), self._receiver)
                break
            except OSError as e:
                last_error = e
                continue
        else:
            raise ListenerError(
                f"No free port for the OAuth callback in {low}-{high}",
                details={"host": self._host, "original_error": str(last_error)}
            )

        redirect_uri = self.redirect_uri
        self._receiver.set_redirect_uri(redirect_uri)
        logger.debug(f"OAuth callback listener bound to {redirect_uri}")
        return redirect_uri

    def start(self) -> str:
        """Bind (if needed) and serve on a daemon thread."""
        if self._server is None:
            self.bind()
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="oauth-callback-listener",
            daemon=True,
        )
        self._thread.start()
        return self.redirect_uri

    def stop(self) -> None:
        if self._server is None:
            return
        if self._thread is not None:
            self._server.shutdown()
            self._thread.join(timeout=5)
            self._thread = None
        self._server.server_close()
        self._server = None


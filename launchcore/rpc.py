"""A local socket server that accepts single line commands, and its client."""

from __future__ import annotations

import argparse
import os
import re
import socket
import threading
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

from launchcore.timing import logger

SOCKET_FILE_NAME = "ipc_socket"

_NON_SPACE = re.compile(r"\S")

Action = Callable[[str], str]


class InstanceRunningError(RuntimeError):
    """Another instance already serves the socket."""


def _default_socket_path() -> str:
    cache = os.environ.get("XDG_CACHE_HOME") or os.path.join(Path.home(), ".cache")
    return os.path.join(cache, "launchcore", SOCKET_FILE_NAME)


def default_actions(app: Any) -> dict[str, Action]:
    """The standard commands, acting on ``app``.

    ``app`` provides show(text), hide(), toggle(), show_settings(),
    restart() and quit().
    """

    def show(param: str) -> str:
        app.show(param)
        return "Window set visible."

    def hide(param: str) -> str:
        app.hide()
        return "Window set hidden."

    def toggle(param: str) -> str:
        app.toggle()
        return "Window visibility toggled."

    def settings(param: str) -> str:
        app.show_settings()
        return "Settings opened."

    def restart(param: str) -> str:
        app.restart()
        return "Triggered restart."

    def quit_(param: str) -> str:
        app.quit()
        return "Triggered quit."

    return {
        "show": show,
        "hide": hide,
        "toggle": toggle,
        "settings": settings,
        "restart": restart,
        "quit": quit_,
    }


class RPCServer:
    """Serves commands on a Unix domain socket.

    A message is ``<command> <parameter>``; the reply is what the command's
    action returns, or a list of valid commands.
    """

    def __init__(
        self,
        socket_path: Union[str, os.PathLike],
        actions: Mapping[str, Action],
        read_timeout: float = 0.05,
    ) -> None:
        self.socket_path = str(socket_path)
        self.actions = dict(actions)
        self.read_timeout = read_timeout
        self._server: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def __enter__(self) -> "RPCServer":
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _check_running_instance(self) -> None:
        logger.debug("Checking for a running instance…")
        probe = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        probe.settimeout(30.0)
        try:
            probe.connect(self.socket_path)
        except FileNotFoundError:
            return
        except ConnectionRefusedError:
            logger.warning(
                "The application has not been terminated properly. "
                "Please check your crash reports and report an issue."
            )
            Path(self.socket_path).unlink(missing_ok=True)
            return
        finally:
            probe.close()
        raise InstanceRunningError("There is another instance running.")

    def start(self) -> None:
        """Listen on the socket. Raises InstanceRunningError if it is served."""
        if self._server is not None:
            raise RuntimeError("The server is already running.")
        self._check_running_instance()

        logger.debug("Creating local server %s", self.socket_path)
        server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            server.bind(self.socket_path)
            server.listen()
        except OSError as e:
            server.close()
            raise OSError(f"Failed creating IPC server: {e}") from e
        server.settimeout(0.1)

        self._server = server
        self._stop.clear()
        self._thread = threading.Thread(target=self._serve, name="rpc-server", daemon=True)
        self._thread.start()

    def close(self) -> None:
        """Stop serving and remove the socket file."""
        if self._server is None:
            return
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._server.close()
        self._server = None
        Path(self.socket_path).unlink(missing_ok=True)

    def _serve(self) -> None:
        assert self._server is not None
        while not self._stop.is_set():
            try:
                conn, _ = self._server.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            with conn:
                self._handle_connection(conn)

    def _handle_connection(self, conn: socket.socket) -> None:
        conn.settimeout(self.read_timeout)
        try:
            data = conn.recv(65536)
        except (socket.timeout, OSError):
            data = b""
        if not data:
            return
        message = data.decode("utf-8", errors="replace")
        logger.debug("Received message: %s", message)
        try:
            response = self.handle_message(message)
        except Exception as e:
            logger.warning("RPC command failed: %s", e)
            response = f"RPC command failed: {e}"
        try:
            conn.settimeout(1.0)
            conn.sendall(response.encode("utf-8"))
        except OSError as e:
            logger.warning("Failed sending RPC reply: %s", e)

    def handle_message(self, message: str) -> str:
        """Run the command in ``message`` and return the reply."""
        match = _NON_SPACE.search(message)
        if match:
            message = message[match.start():]
        op, _, param = message.partition(" ")
        action = self.actions.get(op)
        if action is None:
            logger.info("Received invalid RPC command: %s", message)
            lines = [f"Invalid RPC command: '{message}'. Use these", *sorted(self.actions)]
            return "\n".join(lines)
        return action(param)


def send_message(
    socket_path: Union[str, os.PathLike], message: str, timeout: float = 0.5
) -> str:
    """Send ``message`` to a running server and return its reply.

    Raises ConnectionError if no server answers on ``socket_path``.
    """
    path = str(socket_path)
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.settimeout(timeout)
        try:
            sock.connect(path)
        except OSError as e:
            raise ConnectionError(f"Failed to connect to {path}.") from e
        sock.sendall(message.encode("utf-8"))
        sock.shutdown(socket.SHUT_WR)
        sock.settimeout(1.0)
        chunks = []
        try:
            while chunk := sock.recv(65536):
                chunks.append(chunk)
        except socket.timeout:
            pass
    return b"".join(chunks).decode("utf-8", errors="replace")


def main(argv: Optional[list[str]] = None) -> int:
    """Send a command to the running instance and print its reply."""
    parser = argparse.ArgumentParser(
        prog="launchcore", description="Send a command to the running instance."
    )
    parser.add_argument("--socket", default=None, help="path of the IPC socket")
    parser.add_argument("command", nargs="+", help="command and its parameters")
    args = parser.parse_args(argv)

    path = args.socket or _default_socket_path()
    try:
        reply = send_message(path, " ".join(args.command))
    except ConnectionError:
        print("Failed to connect.")
        return 1
    print(reply)
    return 0
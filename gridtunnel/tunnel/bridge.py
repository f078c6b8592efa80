import logging
import os
import selectors
import socket
import sys
from collections.abc import Callable

from gridtunnel.control.lifecycle import LifecycleContext
from gridtunnel.models.job import ResolvedEndpoint

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
PROBE_TIMEOUT = 1.0

Connector = Callable[..., socket.socket]


def is_reachable(
    endpoint: ResolvedEndpoint,
    timeout: float = PROBE_TIMEOUT,
    connect: Connector = socket.create_connection,
) -> bool:
    try:
        with connect((endpoint.node, endpoint.port), timeout=timeout):
            return True
    except OSError:
        return False


def _write_all(fd: int, data: bytes):
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


class TunnelBridge:
    """Raw byte pipe between this process's stdio and a job's TCP endpoint."""

    def __init__(
        self,
        stdin_fd: int | None = None,
        stdout_fd: int | None = None,
        probe_interval: float = 1.0,
        connect: Connector = socket.create_connection,
    ):
        self.stdin_fd = sys.stdin.fileno() if stdin_fd is None else stdin_fd
        self.stdout_fd = sys.stdout.fileno() if stdout_fd is None else stdout_fd
        self.probe_interval = probe_interval
        self._connect = connect

    def wait_reachable(self, endpoint: ResolvedEndpoint, context: LifecycleContext) -> int:
        probes = 0
        while True:
            probes += 1
            started = context.clock()
            if is_reachable(endpoint, connect=self._connect):
                logger.debug("%s:%s reachable after %s probe(s)", endpoint.node, endpoint.port, probes)
                return probes
            context.check_deadline()
            # A slow probe counts towards the interval.
            context.wait(max(0.0, self.probe_interval - (context.clock() - started)))

    def relay(self, endpoint: ResolvedEndpoint) -> int:
        try:
            sock = self._connect((endpoint.node, endpoint.port))
        except OSError as e:
            logger.error("Could not connect to %s:%s: %s", endpoint.node, endpoint.port, e)
            return 1
        sock.settimeout(None)
        try:
            with sock, selectors.DefaultSelector() as selector:
                selector.register(self.stdin_fd, selectors.EVENT_READ, "local")
                selector.register(sock, selectors.EVENT_READ, "remote")
                while True:
                    for key, _ in selector.select():
                        if key.data == "local":
                            data = os.read(self.stdin_fd, CHUNK_SIZE)
                            if not data:
                                selector.unregister(self.stdin_fd)
                                sock.shutdown(socket.SHUT_WR)
                                continue
                            sock.sendall(data)
                        else:
                            data = sock.recv(CHUNK_SIZE)
                            if not data:
                                return 0
                            _write_all(self.stdout_fd, data)
        except OSError as e:
            logger.error("Connection to %s:%s failed: %s", endpoint.node, endpoint.port, e)
            return 1

import contextlib
import getpass
import os
import signal
import subprocess
from collections.abc import Iterator

from gridtunnel.control.lifecycle import LifecycleContext
from gridtunnel.errors import SessionInterrupted

FORWARDED_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


def get_user() -> str:
    return os.environ.get("USER") or getpass.getuser()


@contextlib.contextmanager
def forward_signals(context: LifecycleContext) -> Iterator[LifecycleContext]:
    def handler(signum, frame):
        context.interrupt(signum)
        # Waits observe the event; once relaying there is nothing left to clean up.
        if context.connected:
            raise SessionInterrupted(signum)

    previous = {}
    for signum in FORWARDED_SIGNALS:
        with contextlib.suppress(ValueError, OSError):
            previous[signum] = signal.signal(signum, handler)
    try:
        yield context
    finally:
        for signum, old in previous.items():
            signal.signal(signum, old)


def open_shell(node: str) -> int:
    return subprocess.call(["ssh", node])

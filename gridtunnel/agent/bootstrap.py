"""Job-side entry point: serve sshd on the port encoded in the job name.

The scheduler copies this file to the execution host and runs it with the
interpreter given to ``qsub -S``, so it must only import the standard library.
"""

import os
import shutil
import subprocess
import sys
from pathlib import Path

HOST_KEY_NAME = "vscode-remote-hostkey"
SYSTEM_SSHD = Path("/usr/sbin/sshd")


def get_host_key_path() -> Path:
    return Path.home() / ".ssh" / HOST_KEY_NAME


def ensure_host_key(path: Path) -> Path:
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    if not path.exists():
        subprocess.run(
            ["ssh-keygen", "-q", "-t", "ed25519", "-f", str(path), "-N", ""],
            check=True,
        )
    return path


def sshd_command(port: int, host_key: Path) -> list[str]:
    sshd = str(SYSTEM_SSHD) if SYSTEM_SSHD.exists() else shutil.which("sshd") or "sshd"
    return [sshd, "-D", "-p", str(port), "-f", "/dev/null", "-h", str(host_key)]


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print(f"Usage: {Path(sys.argv[0]).name} <port>", file=sys.stderr)
        return 1
    try:
        port = int(args[0])
    except ValueError:
        print(f"Invalid port: {args[0]}", file=sys.stderr)
        return 1
    command = sshd_command(port, ensure_host_key(get_host_key_path()))
    os.execvp(command[0], command)
    return 0


if __name__ == "__main__":
    sys.exit(main())

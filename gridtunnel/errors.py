class GridTunnelError(Exception):
    exit_code = 1


class JobStartTimeout(GridTunnelError):
    def __init__(self, timeout_seconds: int):
        super().__init__(f"Timeout after {timeout_seconds}s, exiting...")
        self.timeout_seconds = timeout_seconds


class SessionInterrupted(GridTunnelError):
    def __init__(self, signum: int | None = None):
        super().__init__("Interrupted" if signum is None else f"Interrupted by signal {signum}")
        self.signum = signum


class NoRunningJob(GridTunnelError):
    def __init__(self):
        super().__init__("No running job found")


class InvalidChoice(GridTunnelError):
    def __init__(self, choice: str):
        super().__init__("Invalid choice")
        self.choice = choice

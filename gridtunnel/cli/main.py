import logging
import os
import sys

import click

from gridtunnel.config import Settings, load_settings
from gridtunnel.control.lifecycle import (
    LifecycleContext,
    LifecycleController,
    cancel_jobs,
    list_jobs,
)
from gridtunnel.control.process_manager import forward_signals, get_user, open_shell
from gridtunnel.control.scheduler import SchedulerClient
from gridtunnel.control.session import choose_node
from gridtunnel.errors import GridTunnelError
from gridtunnel.models.session import JobClass, SessionRequest
from gridtunnel.tunnel.bridge import TunnelBridge

LOG_LEVEL_ENV = "VSCODE_REMOTE_LOG_LEVEL"


def compute_log_level(verbose: int, quiet: int) -> int:
    level = logging.INFO - (10 * verbose) + (10 * quiet)
    return min(max(level, logging.DEBUG), logging.CRITICAL)


def configure_logging(verbose: int, quiet: int):
    logger = logging.getLogger("gridtunnel")
    env_level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV, "").upper())
    if isinstance(env_level, int) and not (verbose or quiet):
        logger.setLevel(env_level)
    else:
        logger.setLevel(compute_log_level(verbose, quiet))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    # stdout carries the tunnel, so diagnostics only ever go to stderr.
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


class CommandGroup(click.Group):
    def resolve_command(self, ctx, args):
        name = args[0] if args else None
        if name and not name.startswith("-") and self.get_command(ctx, name) is None:
            click.echo(f"Command '{name}' does not exist", err=True)
            click.echo(ctx.get_help(), err=True)
            ctx.exit(1)
        return super().resolve_command(ctx, args)


def _settings() -> Settings:
    try:
        return load_settings()
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def _fail(err: GridTunnelError):
    click.echo(str(err), err=True)
    sys.exit(err.exit_code)


def _all_requests(settings: Settings) -> list[SessionRequest]:
    return [SessionRequest(job_class, settings.base_name) for job_class in JobClass]


@click.group(cls=CommandGroup, invoke_without_command=True)
@click.option("-v", "--verbose", count=True, help="More log output on stderr")
@click.option("-q", "--quiet", count=True, help="Less log output on stderr")
@click.pass_context
def cli(ctx: click.Context, verbose: int, quiet: int):
    """Start and reach vscode-remote jobs on a Grid Engine cluster.

    \b
    General commands:
      list      List running vscode-remote jobs
      cancel    Cancel running vscode-remote jobs
      ssh       SSH into the node of a running job
      help      Display this message

    \b
    Job commands:
      cpu       Connect to a CPU node
      gpu       Connect to a GPU node

    \b
    Do not call 'cpu' or 'gpu' by hand. Use them as the ProxyCommand in
    ~/.ssh/config, for example:
        Host vscode-remote-cpu
            User USERNAME
            IdentityFile ~/.ssh/vscode-remote
            ProxyCommand ssh HPC-LOGIN "~/bin/vscode-remote cpu"
            StrictHostKeyChecking no

    A CPU and a GPU job can run at the same time; add them as separate hosts.
    """
    configure_logging(verbose, quiet)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command(name="help")
@click.pass_context
def help_(ctx: click.Context):
    """Display usage."""
    click.echo(ctx.parent.get_help())


@cli.command(name="list")
def list_():
    """List running vscode-remote jobs."""
    settings = _settings()
    for record in list_jobs(SchedulerClient(), get_user(), _all_requests(settings)):
        line = f"{record.job_id} {record.state_code} {record.full_name} {record.queue or ''}"
        click.echo(line.rstrip())


@cli.command()
def cancel():
    """Cancel running vscode-remote jobs."""
    settings = _settings()
    context = LifecycleContext(settings.timeout_seconds)
    try:
        with forward_signals(context):
            cancel_jobs(
                SchedulerClient(),
                get_user(),
                _all_requests(settings),
                context,
                settings.cancel_poll_interval,
                report=click.echo,
            )
    except GridTunnelError as e:
        _fail(e)


def _prompt_choice(nodes: dict[JobClass, str]) -> str:
    click.echo("Multiple jobs found, please specify which node to connect to:")
    click.echo(f"1) {nodes[JobClass.CPU]} (CPU)")
    click.echo(f"2) {nodes[JobClass.GPU]} (GPU)")
    return click.prompt("Enter 1 or 2", default="", show_default=False)


@cli.command()
def ssh():
    """SSH into the node of a running job."""
    settings = _settings()
    try:
        job_class, node = choose_node(
            SchedulerClient(), get_user(), settings.base_name, _prompt_choice
        )
    except GridTunnelError as e:
        _fail(e)
    click.echo(f"Connecting to {node} ({job_class.name}) via SSH")
    sys.exit(open_shell(node))


def _connect(job_class: JobClass):
    settings = _settings()
    context = LifecycleContext(settings.timeout_seconds)
    controller = LifecycleController(
        SchedulerClient(),
        settings,
        context,
        get_user(),
        bridge=TunnelBridge(probe_interval=settings.probe_interval),
    )
    try:
        with forward_signals(context):
            status = controller.connect(SessionRequest(job_class, settings.base_name))
    except GridTunnelError as e:
        _fail(e)
    sys.exit(status)


@cli.command()
def cpu():
    """Connect to a CPU node (ProxyCommand only)."""
    _connect(JobClass.CPU)


@cli.command()
def gpu():
    """Connect to a GPU node (ProxyCommand only)."""
    _connect(JobClass.GPU)


if __name__ == "__main__":
    cli()

"""CLI entrypoint for shellflow."""

from __future__ import annotations

from typing import Optional

import typer

from shellflow import __version__
from shellflow.config import SessionConfig
from shellflow.errors import ConfigError
from shellflow.flow.builder import FlowBuilder
from shellflow.jitter import ExecContext
from shellflow.shell import Shell
from shellflow.ui.render import configure_logging, render_error

app = typer.Typer(add_completion=False, help="Declarative interactive shell wizards.")

INSTALL_SECONDS = 1.5
INSTALL_TIMEOUT_MS = 3500


@app.callback(invoke_without_command=True)
def root(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log session transitions to stderr."),
) -> None:
    """shellflow command line."""
    configure_logging(verbose)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


@app.command("demo")
def demo(
    buffer_size: Optional[int] = typer.Option(None, "--buffer-size", "-b", help="History buffer capacity."),
) -> None:
    """Run the sample installer wizard."""
    overrides = {}
    if buffer_size is not None:
        overrides["buffer_size"] = buffer_size
    try:
        config = SessionConfig.from_env(**overrides)
    except ConfigError as exc:
        render_error(str(exc))
        raise typer.Exit(code=1) from exc
    build_demo(config).start()


@app.command("version")
def version() -> None:
    """Print the installed version."""
    typer.echo(__version__)


def build_demo(config: SessionConfig | None = None) -> Shell:
    shell = Shell(config)

    async def install(ctx: ExecContext) -> None:
        if not await ctx.sleep(INSTALL_SECONDS):
            raise RuntimeError("installation did not finish in time")
        ctx.display("> Programme installed")

    def why_not(flow: FlowBuilder) -> None:
        flow.then_display(lambda: f"you told us you are human: {shell.get_value('human') or '(no answer)'}")
        flow.if_user_inputs("don't know", "dk").then_quit("sorry to hear that")
        flow.if_user_inputs("because", "b").then_branch("go on then", lambda nested: nested.then_quit(
            f"noted: {shell.get_value('robot')}"
        ))

    def next_branch(flow: FlowBuilder) -> None:
        (
            flow.ask("Are you sure you're not a robot?", "robot")
            .if_user_inputs("yes")
            .then_quit("bye!")
            .default("yes")
            .if_user_inputs("no")
            .then_branch("why not?", why_not)
        )

    (
        shell.set_greeting("Gandalf the WIZARD shell", f"version {__version__}")
        .ask("are you a human?", "human")
        .first_instruction("Would you like to install the programme?")
        .branch("next", next_branch)
        .if_user_inputs("yes", "y", "YES", "ye", "Y", "YE")
        .default("yes")
        .then_run(install, "installing programme...", INSTALL_TIMEOUT_MS)
        .then_quit("awesome")
        .if_user_inputs("no", "NO", "n", "N")
        .go_to("next", "ok, let's try something else")
    )
    return shell


def main() -> None:
    app()


if __name__ == "__main__":
    main()

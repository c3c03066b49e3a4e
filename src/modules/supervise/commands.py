from typing import Tuple
import click

from .command.run import RunCommand


def create_run_commands() -> click.Command:
    """Create the run command."""

    @click.command(
        name="run",
        context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False}
    )
    @click.argument("program", nargs=-1, required=True, type=click.UNPROCESSED)
    @click.option("--cleanup", multiple=True,
                  help="Shell command to run at shutdown (repeatable, runs in reverse order)")
    @click.option("--grace", type=float, default=5.0, show_default=True,
                  help="Seconds to wait after SIGTERM before killing the program")
    @click.pass_context
    def run(ctx, program: Tuple[str, ...], cleanup: Tuple[str, ...], grace: float):
        """Run PROGRAM and clean up after it when it exits or a termination signal arrives.

        Cleanup commands are registered in the order given and run last-first,
        after PROGRAM has been stopped. Use -- to separate PROGRAM's own options.
        """
        command = RunCommand(
            logger=ctx.obj.logger,
            config=ctx.obj.config,
            grace=grace
        )
        ctx.exit(command.execute(program, cleanup))

    return run

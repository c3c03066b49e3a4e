from typing import Optional, TextIO
import click
from src.modules.logging import create_logger
from src.modules.shutdown import ShutdownConfig, ShutdownConfigLoader
from src.modules.supervise import create_run_commands


class UnwindContext:
    """Context object to store CLI state."""
    def __init__(self):
        self.logger = None
        self.config = ShutdownConfig()

pass_context = click.make_pass_decorator(UnwindContext, ensure=True)

@click.group()
@click.option('--output', '-o',
              type=click.Choice(['colorful', 'plain', 'json']),
              default='colorful',
              help='Output format (colorful for CLI, plain for CI/file, json for machine parsing)',
              envvar='UNWIND_OUTPUT')
@click.option('--log-level', '-l',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
              default='INFO',
              help='Set the logging level',
              envvar='UNWIND_LOG_LEVEL')
@click.option('--config', '-c', 'config_file',
              type=click.File('r'),
              help='YAML file with shutdown settings',
              envvar='UNWIND_CONFIG')
@pass_context
def cli(ctx, output, log_level, config_file: Optional[TextIO]):
    """Unwind CLI Tool: orderly cleanup when a process is asked to stop."""
    ctx.logger = create_logger(output, log_level)
    if config_file is not None:
        try:
            ctx.config = ShutdownConfigLoader.load(config_file.read())
        except ValueError as err:
            raise click.BadParameter(str(err), param_hint="'--config'")

# Add commands
cli.add_command(create_run_commands())

def main():
    cli()

if __name__ == '__main__':
    main()

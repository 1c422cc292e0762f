import typer

from buildinfo.collectors import COLLECTORS
from buildinfo.commands import convert
from buildinfo.commands import verify
from buildinfo.commands.collect import make_command
from buildinfo.core.logging import setup_logging

app = typer.Typer(
    help='Build-info: record what went into a build and what came out of it.',
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)

for name in COLLECTORS:
    app.command(name)(make_command(name))
app.command('convert')(convert.main)
app.command('verify')(verify.main)


@app.callback()
def main(
    debug: bool = typer.Option(False, '--debug', help='Enable debug logging'),
):
    """
    Build-info CLI.
    """
    level = 'DEBUG' if debug else 'INFO'
    setup_logging(level=level)


if __name__ == '__main__':
    app()

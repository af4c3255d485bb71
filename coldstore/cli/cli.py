"""
Main CLI application using Typer.

Entry point: python -m coldstore
CLI Name: coldstore
"""
import typer

from coldstore import __version__ as app_version

app = typer.Typer(
    name="coldstore",
    help="Cold storage migration for content store media",
)

@app.command()
def version():
    """Show CLI version information."""
    typer.echo(f"coldstore version {app_version}")

# Register command groups
from coldstore.cli.commands import cold_storage
app.add_typer(cold_storage.app, name="migrate")

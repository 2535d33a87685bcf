"""
Flask CLI commands.

Commands:
- flask init-db: create the payables schema
- flask drop-db: drop it (asks for confirmation)
"""
import click

from payables.database import create_schema, drop_schema


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all payables tables."""
        create_schema()
        click.echo(click.style('Schema created.', fg='green'))

    @app.cli.command('drop-db')
    @click.confirmation_option(prompt='Drop every payables table?')
    def drop_db_command():
        """Drop all payables tables."""
        drop_schema()
        click.echo(click.style('Schema dropped.', fg='yellow'))

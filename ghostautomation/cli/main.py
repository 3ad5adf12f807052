"""
Main CLI entry point for Ghost Automation
"""

import logging

import click

from ..core.observability import setup_logfire
from .leads import leads_group
from .pipeline import plan_command, run_command, score_command
from .queue import queue_group


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)


@click.group()
@click.version_option(version='0.1.0')
def cli():
    """
    Ghost Automation - TikTok affiliate content pipeline

    Score products, plan pain-point scripts, review videos for compliance
    and turn viral engagement into qualified leads.
    """
    setup_logfire()


# Register command groups
cli.add_command(score_command)
cli.add_command(plan_command)
cli.add_command(run_command)
cli.add_command(queue_group)
cli.add_command(leads_group)


if __name__ == '__main__':
    cli()

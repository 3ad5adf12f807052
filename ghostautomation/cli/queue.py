"""
Preview Queue CLI Commands

Inspect the queue and act on items as a reviewer.
"""

import json
from typing import Optional

import click

from ..core.errors import ComplianceBlocked, InvalidTransition, NotFound
from .common import kernel_context


@click.group(name="queue")
def queue_group():
    """Review generated videos in the preview queue."""
    pass


@queue_group.command(name="status")
@click.option("--json-output", is_flag=True, help="Print the full status as JSON")
def queue_status(json_output: bool):
    """Show queue counts, items awaiting review and alerts."""
    queue = kernel_context().queue
    status = queue.get_status()

    if json_output:
        click.echo(json.dumps(status, indent=2, default=str))
        return

    health = status["queue_health"]
    click.echo(f"📋 Videos in queue: {status['total_videos']}")
    click.echo(f"❤️  Health: {health['status']} ({health['score']:.2f})")

    for name, count in status["status_breakdown"].items():
        if count:
            click.echo(f"   {name}: {count}")

    for entry in status["ready_for_approval"]:
        click.echo(f"✅ Ready: {entry['video_id']} - {entry['title']}")

    for entry in status["pending_compliance_review"]:
        click.echo(f"🔍 {entry['status']}: {entry['video_id']} - {entry['title']}")
        for issue in entry["compliance_issues"]:
            click.echo(f"      - {issue}")

    for alert in status["compliance_alerts"]:
        click.echo(f"⚠️  [{alert['severity']}] {alert['message']}")


@queue_group.command(name="approve")
@click.argument("item_id")
@click.option("--notes", help="Reviewer notes")
def queue_approve(item_id: str, notes: Optional[str]):
    """Approve a video after the final compliance check."""
    queue = kernel_context().queue
    try:
        item = queue.approve(item_id, notes)
    except NotFound as e:
        click.echo(f"❌ {e}", err=True)
        raise click.Abort()
    except ComplianceBlocked as e:
        click.echo(f"❌ Approval blocked for {item_id}:", err=True)
        for issue in e.issues:
            click.echo(f"   - {issue}", err=True)
        raise click.Abort()
    except InvalidTransition as e:
        click.echo(f"❌ {e}", err=True)
        raise click.Abort()

    click.echo(f"✅ Approved {item.id}: {item.title}")


@queue_group.command(name="reject")
@click.argument("item_id")
@click.option("--reason", required=True, help="Why the video is rejected")
def queue_reject(item_id: str, reason: str):
    """Reject a video. Rejection is final."""
    queue = kernel_context().queue
    try:
        item = queue.reject(item_id, reason)
    except (NotFound, InvalidTransition) as e:
        click.echo(f"❌ {e}", err=True)
        raise click.Abort()

    click.echo(f"🗑️  Rejected {item.id}: {reason}")


@queue_group.command(name="feedback")
@click.argument("item_id")
@click.argument("feedback")
def queue_feedback(item_id: str, feedback: str):
    """
    Apply free-text feedback to a video.

    Example:
        ghost queue feedback video_1a2b3c4d "make the hair shorter and lighting blue"
    """
    queue = kernel_context().queue
    try:
        response = queue.process_feedback(item_id, feedback)
    except (NotFound, InvalidTransition) as e:
        click.echo(f"❌ {e}", err=True)
        raise click.Abort()

    if response.changes_applied:
        click.echo(f"✏️  Changes: {', '.join(response.changes_applied)}")
    else:
        click.echo("ℹ️  No changes recognized in feedback")

    click.echo(f"   Compliance: {response.compliance_revalidation.overall_status.value}")
    click.echo(f"   Status: {response.new_status.value}")
    if response.regeneration_required:
        click.echo("🔄 Regeneration required")

"""
Leads CLI Commands
"""

import json

import click

from .common import kernel_context


@click.group(name="leads")
def leads_group():
    """Viral-to-leads reporting."""
    pass


@leads_group.command(name="dashboard")
@click.option("--days", type=int, default=30, show_default=True, help="Reporting window in days")
@click.option("--json-output", is_flag=True, help="Print the dashboard as JSON")
def leads_dashboard(days: int, json_output: bool):
    """Show viral-to-lead conversion for the last N days."""
    dashboard = kernel_context().bridge.conversion_dashboard(days)

    if json_output:
        click.echo(json.dumps(dashboard, indent=2))
        return

    viral = dashboard["viral_performance"]
    leads = dashboard["lead_generation"]
    revenue = dashboard["revenue_impact"]

    click.echo(f"📅 Last {days} days")
    click.echo(f"🎬 Videos: {viral['total_videos']}  Views: {viral['total_views']:,}  "
               f"Avg engagement: {viral['avg_engagement_rate']:.2%}")
    click.echo(f"🧲 Leads: {leads['total_leads']} (hot {leads['hot_leads']}, warm {leads['warm_leads']}, "
               f"qualified {leads['qualified_leads']})  Conversion: {leads['conversion_rate']:.3%}")
    click.echo(f"💰 Estimated lead revenue: ${revenue['revenue_from_viral_leads']:,.2f}")

    for video in dashboard["top_performing_videos"]:
        click.echo(f"   {video['video_id']}: {video['views']:,} views, {video['leads_generated']} leads")

"""
Pipeline CLI Commands

Score catalog products, plan scripts, and run the end-to-end demo.
"""

import asyncio
import json
import logging
import random
from typing import Optional, Tuple

import click

from ..pipelines.content_pipeline import ContentPipeline
from ..services.generators import (
    ClaudeProductEnhancer,
    ClaudeScriptGenerator,
    ElevenLabsVoiceGenerator,
    HeyGenVideoGenerator,
    StaticGenerator,
)
from ..services.viral_leads_bridge import SimulatedEngagementSource
from .common import catalog_providers, kernel_context

logger = logging.getLogger(__name__)

DEMO_SCRIPT = (
    "This is a paid advertisement. Demo script for plan {plan_id}. "
    "I earn a commission from purchases made through my link."
)


def demo_generators():
    return [
        StaticGenerator("script", DEMO_SCRIPT),
        StaticGenerator("voice", "output/audio/{plan_id}.mp3"),
        StaticGenerator("video", "heygen_demo_{plan_id}"),
    ]


def live_generators():
    return [
        ClaudeScriptGenerator(),
        ElevenLabsVoiceGenerator(),
        HeyGenVideoGenerator(),
    ]


@click.command(name="score")
@click.option("--catalog", "catalogs", multiple=True, type=click.Path(exists=True),
              help="JSON catalog export (repeatable)")
@click.option("--category", help="Only score this category")
@click.option("--limit", type=int, default=50, show_default=True, help="Records per provider")
@click.option("--top", type=int, default=10, show_default=True, help="Opportunities to show")
@click.option("--json-output", is_flag=True, help="Print the full scoring report as JSON")
def score_command(catalogs: Tuple[str, ...], category: Optional[str], limit: int, top: int, json_output: bool):
    """
    Score catalog products and recommend a production tier.

    Example:
        ghost score --catalog exports/fastmoss.json --top 5
    """
    ctx = kernel_context()
    providers = catalog_providers(catalogs)

    run = asyncio.run(ctx.scorer.score(providers, category=category, limit=limit))

    if json_output:
        click.echo(json.dumps(run.report(top), indent=2, default=str))
        return

    if not run.opportunities:
        click.echo("❌ No products passed the performance criteria")
        return

    click.echo(f"✅ Scored {len(run.opportunities)} opportunities\n")
    for i, opp in enumerate(run.opportunities[:top], 1):
        click.echo(
            f"{i:>2}. {opp.product_name} [{opp.category}] "
            f"score={opp.score:.3f} {opp.priority.value} -> {opp.recommended_tier.value}"
        )

    failures = run.diagnostics.provider_failures
    if failures:
        click.echo("\n⚠️  Skipped providers:")
        for name, error in failures.items():
            click.echo(f"   {name}: {error}")


@click.command(name="plan")
@click.option("--catalog", "catalogs", multiple=True, type=click.Path(exists=True),
              help="JSON catalog export (repeatable)")
@click.option("--category", help="Only plan this category")
@click.option("--top", type=int, default=5, show_default=True, help="Opportunities to plan")
def plan_command(catalogs: Tuple[str, ...], category: Optional[str], top: int):
    """
    Score products, then match the top ones to pain points and plan scripts.

    Example:
        ghost plan --top 3
    """
    ctx = kernel_context()
    run = asyncio.run(ctx.scorer.score(catalog_providers(catalogs), category=category))

    planned = 0
    for opp in run.opportunities[:top]:
        plan = ctx.planner.plan(opp)
        if plan is None:
            click.echo(f"⏭️  {opp.product_name}: no pain point match")
            continue

        planned += 1
        click.echo(f"\n🎯 {plan.product_name}")
        click.echo(f"   Pain point: {plan.pain_point.value} (match {plan.match_score:.0f})")
        click.echo(f"   Hook: {plan.hook}")
        click.echo(f"   Viral score: {plan.viral_score:.1f}  Revenue: ${plan.estimated_revenue:,.0f}")
        click.echo(f"   Priority: {plan.priority.value}  Tier: {plan.recommended_tier.value}")

    click.echo(f"\n✅ Planned {planned} script(s)")


@click.command(name="run")
@click.option("--catalog", "catalogs", multiple=True, type=click.Path(exists=True),
              help="JSON catalog export (repeatable)")
@click.option("--category", help="Only run this category")
@click.option("--top", type=int, default=5, show_default=True, help="Opportunities to produce")
@click.option("--auto-approve", is_flag=True, help="Approve and publish items that pass compliance")
@click.option("--live", is_flag=True, help="Use Claude, ElevenLabs and HeyGen instead of demo generators")
@click.option("--seed", type=int, default=42, show_default=True, help="Seed for simulated engagement")
def run_command(catalogs: Tuple[str, ...], category: Optional[str], top: int,
                auto_approve: bool, live: bool, seed: int):
    """
    Run the pipeline end to end.

    Without --live, generators return fixed demo handles and published
    videos receive simulated engagement, so the whole flow runs offline.

    Example:
        ghost run --auto-approve --top 3
    """
    ctx = kernel_context()
    pipeline = ContentPipeline(
        ctx,
        live_generators() if live else demo_generators(),
        enhancer=ClaudeProductEnhancer() if live else None,
    )

    result = asyncio.run(pipeline.run(
        catalog_providers(catalogs),
        category=category,
        top=top,
        auto_approve=auto_approve,
        engagement_source=SimulatedEngagementSource(random.Random(seed)),
    ))

    summary = result.to_dict()
    click.echo(f"📊 Scored: {summary['scored']}  Planned: {summary['planned']}  Queued: {len(summary['queued'])}")
    click.echo(f"✅ Ready: {len(summary['ready'])}  🔍 Needs review: {len(summary['needs_review'])}")

    for item_id, error in summary["failed"].items():
        click.echo(f"❌ {item_id}: {error}")

    if auto_approve:
        click.echo(f"🚀 Published: {len(summary['published'])}")
        click.echo(f"🧲 Leads created: {summary['leads_created']} ({summary['hot_leads']} hot)")

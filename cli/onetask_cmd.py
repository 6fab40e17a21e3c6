"""
CLI commands: onetask health | sync | context | chat
"""
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict

import click

# project root on sys.path so the onetask package imports from a checkout
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

from onetask.api_client import OneTaskAPIClient
from onetask.chat_pipeline import ChatPipeline
from onetask.exceptions import APIError, OneTaskError
from onetask.rag_context import build_rag_context
from onetask.sample_data import load_sample_data


def _client(obj: Dict[str, Any]) -> OneTaskAPIClient:
    return OneTaskAPIClient(
        base_url=obj.get("base_url"),
        user_id=obj.get("user_id"),
        auth_token=obj.get("token"),
        transport=obj.get("transport"),
    )


@click.group()
@click.option("--user-id", default=None, help="Backend user id (default: demo user)")
@click.option("--token", default=None, envvar="ONETASK_TOKEN", help="Bearer token")
@click.option("--base-url", default=None, help="Override the API base URL")
@click.pass_context
def cli(ctx, user_id, token, base_url):
    """OneTask productivity assistant client"""
    ctx.ensure_object(dict)
    ctx.obj.setdefault("user_id", user_id)
    ctx.obj.setdefault("token", token)
    ctx.obj.setdefault("base_url", base_url)


@cli.command()
@click.pass_obj
def health(obj):
    """Check that the backend is reachable"""
    async def run():
        async with _client(obj) as client:
            await client.check_health()
            return client.base_url

    try:
        base_url = asyncio.run(run())
    except APIError as e:
        click.echo(f"❌ Backend unavailable: {e.get_user_message()}", err=True)
        sys.exit(1)
    click.echo(f"✅ Backend reachable: {base_url}")


@cli.command()
@click.pass_obj
def sync(obj):
    """Fetch every collection and print the counts"""
    async def run():
        async with _client(obj) as client:
            return client.user_id, await client.sync_all()

    try:
        user_id, snapshot = asyncio.run(run())
    except APIError as e:
        click.echo(f"❌ Sync failed: {e.get_user_message()}", err=True)
        sys.exit(1)

    click.echo(f"🔄 Synced data for {user_id}")
    click.echo(f"  Tasks:    {len(snapshot.tasks)}")
    click.echo(f"  Habits:   {len(snapshot.habits)}")
    click.echo(f"  Goals:    {len(snapshot.goals)}")
    click.echo(f"  Projects: {len(snapshot.projects)}")


@cli.command()
@click.option("--sample", is_flag=True, help="Use the bundled sample data instead of the backend")
@click.option("--timezone", "tz_name", default=None, help="IANA zone for the timestamp")
@click.pass_obj
def context(obj, sample, tz_name):
    """Print the RAG context summary"""
    if sample:
        snapshot = load_sample_data()
    else:
        async def run():
            async with _client(obj) as client:
                return await client.sync_all()

        try:
            snapshot = asyncio.run(run())
        except APIError as e:
            click.echo(f"❌ Could not load data: {e.get_user_message()}", err=True)
            click.echo("💡 Use --sample to preview with the bundled sample data", err=True)
            sys.exit(1)

    try:
        ctx = build_rag_context(
            snapshot.tasks, snapshot.habits, snapshot.goals, snapshot.projects,
            timezone=tz_name,
        )
    except OneTaskError as e:
        click.echo(f"❌ {e.get_user_message()}", err=True)
        sys.exit(1)
    click.echo(ctx.summary)


@cli.command()
@click.argument("message")
@click.option("--chat-url", default=None, help="Override the chat service base URL")
@click.pass_obj
def chat(obj, message, chat_url):
    """Ask the assistant about your data"""
    async def run():
        async with _client(obj) as client:
            async with ChatPipeline(
                client,
                chat_base_url=chat_url,
                transport=obj.get("transport"),
                retry_delay=obj.get("retry_delay"),
            ) as pipeline:
                return await pipeline.send(message)

    try:
        response = asyncio.run(run())
    except OneTaskError as e:
        click.echo(f"❌ {e.get_user_message()}", err=True)
        sys.exit(1)
    click.echo(response.response)


if __name__ == "__main__":
    cli(obj={})

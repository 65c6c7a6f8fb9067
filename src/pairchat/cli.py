"""CLI interface for pairchat."""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable

import click

from . import __version__
from .app import ChatApp
from .avatar import base64_size_kb, encode_avatar_file
from .config import AUTH_PATH, DATA_DIR, SESSION_PATH, STORE_PATH
from .errors import ChatError, NotAuthenticated
from .models import Message, ProfilePatch


async def _with_app(body: Callable[[ChatApp], Awaitable[Any]]) -> Any:
    app = await ChatApp.open(STORE_PATH, AUTH_PATH, SESSION_PATH)
    try:
        return await body(app)
    finally:
        app.close()


def _run(body: Callable[[ChatApp], Awaitable[Any]]) -> Any:
    try:
        return asyncio.run(_with_app(body))
    except ChatError as exc:
        raise click.ClickException(exc.message) from exc
    except KeyboardInterrupt:
        return None


def _require_identity(app: ChatApp) -> str:
    if app.session.current_identity is None:
        saved = app.session.get_saved_identity()
        if saved is not None:
            raise NotAuthenticated(f"The saved session for {saved} has expired. Run: pairchat login")
        raise NotAuthenticated("You are not signed in. Run: pairchat login")
    return app.session.current_identity


def _format_ts(ts: datetime | None) -> str:
    if ts is None:
        return "-"
    return ts.astimezone().strftime("%Y-%m-%d %H:%M")


def _echo_message(msg: Message, names: dict[str, str]):
    who = names.get(msg.sender, msg.sender)
    click.echo(f"[{_format_ts(msg.sent_at)}] {click.style(who, bold=True)}: {msg.content}")


@click.group()
@click.version_option(version=__version__, prog_name="pairchat")
@click.option("-v", "--verbose", is_flag=True, help="Log store and session activity to stderr")
def cli(verbose: bool):
    """pairchat — two-party instant messaging from the terminal."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


@cli.command()
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--name", "display_name", prompt="Display name")
def signup(email: str, password: str, display_name: str):
    """Create an account and sign in."""

    async def body(app: ChatApp):
        (await app.session.sign_up(email, password, display_name)).unwrap()
        click.echo(f"Welcome, {display_name}! Your id is {app.session.current_identity}")

    _run(body)


@cli.command()
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True)
def login(email: str, password: str):
    """Sign in with an existing account."""

    async def body(app: ChatApp):
        (await app.session.login(email, password)).unwrap()
        profile = app.session.current_profile
        click.echo(f"Signed in as {profile.display_name if profile else email}")

    _run(body)


@cli.command()
def logout():
    """Sign out and forget the saved session."""

    async def body(app: ChatApp):
        result = await app.session.logout()
        if not result.ok:
            click.echo(f"Warning: {result.error.message}", err=True)
        click.echo("Signed out.")

    _run(body)


@cli.command()
def whoami():
    """Show the signed-in identity."""

    async def body(app: ChatApp):
        user_id = _require_identity(app)
        profile = app.session.current_profile
        if profile is None:
            click.echo(f"{user_id} (no profile)")
        else:
            click.echo(f"{profile.display_name} <{profile.email}> — {user_id}")

    _run(body)


@cli.command()
@click.option("--watch", is_flag=True, help="Keep running and print the roster on every change")
def users(watch: bool):
    """List everyone you can chat with."""

    async def body(app: ChatApp):
        user_id = _require_identity(app)
        async with await app.profiles.live_roster(excluding=user_id) as roster:
            async for profiles in roster:
                if not profiles:
                    click.echo("No other users yet.")
                for p in profiles:
                    bio = f" — {p.bio}" if p.bio else ""
                    click.echo(f"{p.id}  {click.style(p.display_name, bold=True)}{bio}")
                if not watch:
                    break
                click.echo()

    _run(body)


@cli.command()
@click.argument("user_id")
def chat(user_id: str):
    """Open (or create) the conversation with USER_ID and print its id."""

    async def body(app: ChatApp):
        _require_identity(app)
        click.echo(await app.open_conversation(user_id))

    _run(body)


@cli.command()
@click.argument("user_id")
@click.argument("message")
def send(user_id: str, message: str):
    """Send MESSAGE to USER_ID."""
    if not message.strip():
        raise click.ClickException("Message is empty.")

    async def body(app: ChatApp):
        _require_identity(app)
        await app.send(user_id, message)
        click.echo("Sent.")

    _run(body)


@cli.command()
@click.argument("user_id")
@click.option("--follow", is_flag=True, help="Keep running and print new messages as they arrive")
def history(user_id: str, follow: bool):
    """Show the conversation with USER_ID."""

    async def body(app: ChatApp):
        me = _require_identity(app)
        conv_id = await app.open_conversation(user_id)
        other = await app.profiles.get_by_id(user_id)
        names = {me: "me", user_id: other.display_name if other else user_id}

        shown = 0
        async with await app.messages.live_log(conv_id) as log:
            async for messages in log:
                for msg in messages[shown:]:
                    _echo_message(msg, names)
                shown = len(messages)
                if not follow:
                    break
        if not shown:
            click.echo("No messages yet.")

    _run(body)


@cli.command()
def conversations():
    """List your conversations, most recent first."""

    async def body(app: ChatApp):
        me = _require_identity(app)
        convs = await app.messages.conversations_for(me)
        if not convs:
            click.echo("No conversations yet.")
            return
        for conv in convs:
            other_id = conv.other_participant(me)
            other = await app.profiles.get_by_id(other_id)
            name = other.display_name if other else other_id
            preview = (conv.last_message_text or "").replace("\n", " ")[:60]
            click.echo(f"{click.style(name, bold=True)} ({_format_ts(conv.last_message_at)})")
            click.echo(f"   {preview or '(no messages)'}")

    _run(body)


@cli.group()
def profile():
    """Show or edit your profile."""
    pass


@profile.command("show")
def profile_show():
    """Show your profile."""

    async def body(app: ChatApp):
        _require_identity(app)
        p = await app.session.refresh_profile()
        if p is None:
            raise click.ClickException("Profile not found.")
        click.echo(f"  Name:    {p.display_name}")
        click.echo(f"  Email:   {p.email}")
        click.echo(f"  Bio:     {p.bio or '-'}")
        avatar = f"{base64_size_kb(p.avatar_data):.0f} KB" if p.avatar_data else "-"
        click.echo(f"  Avatar:  {avatar}")
        click.echo(f"  Updated: {_format_ts(p.updated_at)}")

    _run(body)


@profile.command("update")
@click.option("--name", "display_name", help="New display name")
@click.option("--bio", help="New bio")
@click.option("--avatar", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="Image file")
def profile_update(display_name: str | None, bio: str | None, avatar: Path | None):
    """Change your name, bio or avatar."""
    if display_name is None and bio is None and avatar is None:
        raise click.UsageError("Nothing to update. Use --name, --bio or --avatar.")

    async def body(app: ChatApp):
        avatar_data = encode_avatar_file(avatar) if avatar else None
        patch = ProfilePatch(display_name=display_name, bio=bio, avatar_data=avatar_data)
        (await app.session.update_profile(patch)).unwrap()
        click.echo("Profile updated.")

    _run(body)


@cli.command()
def serve():
    """Start the MCP server (stdio transport)."""
    from .server import mcp

    mcp.run(transport="stdio")


@cli.command()
@click.confirmation_option(prompt="This will delete all local accounts and messages. Are you sure?")
def reset():
    """Delete all local data and start fresh."""
    if DATA_DIR.exists():
        shutil.rmtree(DATA_DIR)
        click.echo(f"Deleted {DATA_DIR}")
    else:
        click.echo("No data to delete.")

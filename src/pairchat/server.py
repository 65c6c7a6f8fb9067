"""FastMCP server exposing messaging tools for the signed-in user."""

from __future__ import annotations

import logging
import sys
from datetime import datetime

from mcp.server.fastmcp import FastMCP

from .app import ChatApp
from .config import AUTH_PATH, SESSION_PATH, STORE_PATH, TRANSCRIPT_MAX_CHARS
from .errors import ChatError
from .models import ProfilePatch

# Logging to stderr only — stdout is the MCP JSON-RPC transport
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)

mcp = FastMCP(
    "pairchat",
    instructions=(
        "Read and send two-party chat messages as the signed-in pairchat user. "
        "Use list_users to find people, read_conversation to see a thread, "
        "send_message to reply, and list_conversations for recent activity."
    ),
)

# Singleton app — reused across tool calls
_app: ChatApp | None = None

NOT_SIGNED_IN = "Not signed in. Run `pairchat login` first."


async def _get_app() -> ChatApp:
    global _app
    if _app is None:
        _app = await ChatApp.open(STORE_PATH, AUTH_PATH, SESSION_PATH)
    else:
        # Pick up logins made from the CLI since the last call
        await _app.session.restore()
    return _app


def _format_ts(ts: datetime | None) -> str:
    if ts is None:
        return "Unknown date"
    return ts.strftime("%Y-%m-%d %H:%M")


@mcp.tool()
async def whoami() -> str:
    """Show the signed-in pairchat user."""
    app = await _get_app()
    profile = app.session.current_profile
    if app.session.current_identity is None:
        return NOT_SIGNED_IN
    if profile is None:
        return f"Signed in as {app.session.current_identity} (no profile)."
    return f"Signed in as **{profile.display_name}** <{profile.email}> (id `{profile.id}`)."


@mcp.tool()
async def list_users() -> str:
    """List everyone the signed-in user can chat with."""
    app = await _get_app()
    me = app.session.current_identity
    if me is None:
        return NOT_SIGNED_IN

    async with await app.profiles.live_roster(excluding=me) as roster:
        profiles = roster.latest

    if not profiles:
        return "No other users yet."
    lines = [f"{len(profiles)} users:\n"]
    for p in profiles:
        lines.append(f"- **{p.display_name}** (id `{p.id}`)" + (f": {p.bio}" if p.bio else ""))
    return "\n".join(lines)


@mcp.tool()
async def list_conversations() -> str:
    """List the signed-in user's conversations, most recent first."""
    app = await _get_app()
    me = app.session.current_identity
    if me is None:
        return NOT_SIGNED_IN

    try:
        convs = await app.messages.conversations_for(me)
    except ChatError as exc:
        return exc.message
    if not convs:
        return "No conversations yet."

    lines = []
    for i, conv in enumerate(convs, 1):
        other_id = conv.other_participant(me)
        other = await app.profiles.get_by_id(other_id)
        name = other.display_name if other else other_id
        lines.append(f"{i}. **{name}** ({_format_ts(conv.last_message_at)})")
        lines.append(f"   Last: {conv.last_message_text or '(no messages)'}")
    return "\n".join(lines)


@mcp.tool()
async def read_conversation(user_id: str) -> str:
    """Read the full conversation with another user.

    Args:
        user_id: The other user's id (from list_users)
    """
    app = await _get_app()
    me = app.session.current_identity
    if me is None:
        return NOT_SIGNED_IN

    try:
        conv_id = await app.open_conversation(user_id)
        messages = await app.messages.read_log(conv_id)
        other = await app.profiles.get_by_id(user_id)
    except ChatError as exc:
        return exc.message

    name = other.display_name if other else user_id
    if not messages:
        return f"No messages with {name} yet."

    lines = [f"# Conversation with {name}", f"Messages: {len(messages)}", ""]
    char_count = 0
    for msg in messages:
        if char_count + len(msg.content) > TRANSCRIPT_MAX_CHARS:
            lines.append(f"\n... [Truncated at {TRANSCRIPT_MAX_CHARS:,} chars]")
            break
        char_count += len(msg.content)
        who = "**Me**" if msg.sender == me else f"**{name}**"
        lines.append(f"{who} ({_format_ts(msg.sent_at)}):")
        lines.append(msg.content)
        lines.append("")
    return "\n".join(lines)


@mcp.tool()
async def send_message(user_id: str, content: str) -> str:
    """Send a message to another user.

    Args:
        user_id: The recipient's id (from list_users)
        content: Message text
    """
    if not content.strip():
        return "Message is empty; nothing sent."
    app = await _get_app()
    if app.session.current_identity is None:
        return NOT_SIGNED_IN
    try:
        await app.send(user_id, content)
    except ChatError as exc:
        return f"Message not sent: {exc.message}"
    return "Sent."


@mcp.tool()
async def update_profile(display_name: str | None = None, bio: str | None = None) -> str:
    """Change the signed-in user's display name or bio.

    Args:
        display_name: New display name (omit to keep)
        bio: New bio (omit to keep)
    """
    app = await _get_app()
    result = await app.session.update_profile(ProfilePatch(display_name=display_name, bio=bio))
    if not result.ok:
        return f"Profile not updated: {result.error.message}"
    return "Profile updated."

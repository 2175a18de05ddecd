"""
tests/test_sources.py — Event Source Adapter Tests
===================================================
Discord objects are faked with ``SimpleNamespace`` and async generators;
no gateway connection is made.
"""

from __future__ import annotations

from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord

from bibleman.bot.sources import ReactionSource, community_of, message_text
from bibleman.constants import COMPLETION_MARKER
from bibleman.engine.events import Direction

from tests.conftest import GUILD, run_async

BOT_ID = 999
POSTED_AT = datetime(2026, 1, 3, 11, 0, 0, tzinfo=UTC)


async def _aiter(items):
    for item in items:
        yield item


def _user(uid: int, name: str = "", *, bot: bool = False):
    return SimpleNamespace(id=uid, name=name or f"user{uid}", display_name=name or f"user{uid}", bot=bot)


def _guild(members: dict | None = None):
    members = members or {}
    return SimpleNamespace(
        name=GUILD,
        id=42,
        get_member=lambda uid: members.get(uid),
        fetch_member=AsyncMock(return_value=None),
    )


def _message(*, author_id: int = BOT_ID, footer: str = COMPLETION_MARKER,
             description: str = "**Day 3**\nGenesis 7-9", reactors=(), guild=None,
             msg_id: int = 900, emoji: str = "✅"):
    reactions = []
    if reactors:
        users = list(reactors)
        reactions.append(SimpleNamespace(emoji=emoji, users=lambda: _aiter(users)))
    embed = SimpleNamespace(description=description, footer=SimpleNamespace(text=footer))
    return SimpleNamespace(
        id=msg_id,
        author=SimpleNamespace(id=author_id),
        embeds=[embed],
        content="",
        guild=guild if guild is not None else _guild(),
        channel=SimpleNamespace(id=500, name="daily-reading"),
        created_at=POSTED_AT,
        reactions=reactions,
    )


class FakeChannel:
    def __init__(self, messages, name="daily-reading"):
        self.name = name
        self.messages = messages

    def history(self, limit=None):
        return _aiter(self.messages[:limit])


def _client(channels: dict | None = None):
    channels = channels or {}
    return SimpleNamespace(
        user=SimpleNamespace(id=BOT_ID),
        get_channel=lambda cid: channels.get(cid),
        fetch_channel=AsyncMock(side_effect=discord.NotFound(
            MagicMock(status=404, reason="Not Found"), "Unknown Channel",
        )),
    )


def _payload(*, user_id: int = 1, emoji: str = "✅", event_type: str = "REACTION_ADD",
             member=None):
    return SimpleNamespace(
        user_id=user_id,
        emoji=emoji,
        event_type=event_type,
        member=member,
        guild_id=42,
        channel_id=500,
        message_id=900,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
class TestMessageHelpers:

    def test_message_text_prefers_embed(self):
        assert message_text(_message(description="**Day 8**")) == "**Day 8**"

    def test_message_text_ignores_content(self):
        msg = _message(description=None)
        msg.content = "Day 7 reading"
        assert message_text(msg) == ""

    def test_message_text_without_embed(self):
        msg = _message()
        msg.embeds = []
        msg.content = "Day 2"
        assert message_text(msg) == ""

    def test_community_is_guild_name(self):
        assert community_of(_message()) == GUILD

    def test_community_without_guild(self):
        msg = _message()
        msg.guild = None
        assert community_of(msg, 42) == "42"
        assert community_of(msg) == "Unknown Server"


# ---------------------------------------------------------------------------
# Live
# ---------------------------------------------------------------------------
class TestObserveLive:

    def setup_method(self):
        self.source = ReactionSource(_client())

    def test_add_event(self):
        member = SimpleNamespace(display_name="Alice")
        event = self.source.observe_live(_payload(member=member), _message())
        assert event.direction is Direction.ADD
        assert event.user_id == "1"
        assert event.display_name == "Alice"
        assert event.community_id == GUILD
        assert event.channel_name == "daily-reading"
        assert event.message_id == 900

    def test_remove_event_uses_given_name(self):
        event = self.source.observe_live(
            _payload(event_type="REACTION_REMOVE"), _message(), display_name="Al",
        )
        assert event.direction is Direction.REMOVE
        assert event.display_name == "Al"

    def test_name_falls_back_to_user_id(self):
        event = self.source.observe_live(_payload(user_id=77), _message())
        assert event.display_name == "77"

    def test_ignores_bot_own_reaction(self):
        assert self.source.observe_live(_payload(user_id=BOT_ID), _message()) is None

    def test_ignores_other_emoji(self):
        assert self.source.observe_live(_payload(emoji="\U0001f525"), _message()) is None

    def test_ignores_message_from_someone_else(self):
        assert self.source.observe_live(_payload(), _message(author_id=5)) is None

    def test_ignores_post_without_marker(self):
        assert self.source.observe_live(_payload(), _message(footer="Have a good day")) is None

    def test_custom_marker(self):
        source = ReactionSource(_client(), marker="Check in below")
        assert source.observe_live(_payload(), _message(footer="Check in below")) is not None


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------
class TestScanHistory:

    def test_lists_reactors_on_daily_posts(self):
        guild = _guild({1: SimpleNamespace(display_name="Pastor Al")})
        messages = [
            _message(reactors=[_user(1, "al"), _user(2, "bea")], guild=guild),
            _message(author_id=5, reactors=[_user(3)], msg_id=901),
            _message(msg_id=902),
        ]
        scanned = run_async(ReactionSource(_client()).scan_history(FakeChannel(messages)))

        assert len(scanned) == 1
        post = scanned[0]
        assert post.message_id == 900
        assert post.community == GUILD
        assert post.text.startswith("**Day 3**")
        assert [(r.user_id, r.display_name) for r in post.reactors] == [
            ("1", "Pastor Al"), ("2", "bea"),
        ]

    def test_skips_only_own_reaction(self):
        messages = [_message(reactors=[_user(BOT_ID), _user(8, bot=True), _user(1)])]
        scanned = run_async(ReactionSource(_client()).scan_history(FakeChannel(messages)))
        assert [r.user_id for r in scanned[0].reactors] == ["8", "1"]

    def test_history_limit(self):
        messages = [_message(reactors=[_user(1)], msg_id=900 + i) for i in range(5)]
        source = ReactionSource(_client(), history_limit=2)
        assert len(run_async(source.scan_history(FakeChannel(messages)))) == 2

    def test_events_use_post_time(self):
        messages = [_message(reactors=[_user(1)])]
        [post] = run_async(ReactionSource(_client()).scan_history(FakeChannel(messages)))
        [event] = post.events()
        assert event.direction is Direction.ADD
        assert event.observed_at == POSTED_AT


class TestCollect:

    def test_unreachable_channel_is_isolated(self):
        good = FakeChannel([_message(reactors=[_user(1)])])
        source = ReactionSource(_client({1: good}))
        scanned, failed = run_async(source.collect([1, 2]))
        assert len(scanned) == 1
        assert failed == [2]

    def test_non_text_channel_is_unreachable(self):
        voice = SimpleNamespace(name="Prayer Room")
        source = ReactionSource(_client({3: voice}))
        scanned, failed = run_async(source.collect([3]))
        assert scanned == []
        assert failed == [3]

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Sequence

import discord
from discord.ext import commands

from lunabot import memory_db
from lunabot.cogs.trigger_policy import CooldownTracker, TriggerPolicy
from lunabot.settings import BotSettings, get_personality_prompt, load_settings
from lunabot.text_generators import CompletionClient
from lunabot.utils.discord_utils import get_display_name, split_message, strip_mentions

if TYPE_CHECKING:
    from lunabot.memory_db import MemoryRecord

logger = logging.getLogger(__name__)


def _render_memory(record: MemoryRecord, bot_name: str) -> str:
    if record.kind == memory_db.KIND_LONG:
        return f"(Remembered for {record.user_name}) {record.content}"
    line = f"{record.user_name}: {record.content}"
    if record.reply:
        line += f"\n{bot_name}: {record.reply}"
    return line


def build_prompt(
    personality: str,
    memories: Sequence[MemoryRecord],
    user_name: str,
    message: str,
    *,
    bot_name: str = "Luna",
    max_chars: int = 6000,
) -> str:
    """Combine personality, recent memories (oldest first) and the new message.

    Oldest memories are dropped first when the prompt would exceed
    ``max_chars``, then the personality is shortened. The new message
    itself is cut only when it alone does not fit.
    """
    head = personality.strip()

    def _tail(text: str) -> str:
        return f"New message from {user_name}:\n{text}\n\nReply as {bot_name}."

    tail = _tail(message)
    rendered = [_render_memory(record, bot_name) for record in memories]

    def _assemble(lines: list[str]) -> str:
        sections = [head]
        if lines:
            sections.append("Recent conversation:\n" + "\n".join(lines))
        sections.append(tail)
        return "\n\n".join(s for s in sections if s)

    prompt = _assemble(rendered)
    while rendered and len(prompt) > max_chars:
        rendered.pop(0)
        prompt = _assemble(rendered)

    if len(prompt) > max_chars:
        # "\n\n" separates head from tail
        head_budget = max_chars - len(tail) - 2
        if head_budget > 0:
            head = head[:head_budget].rstrip()
        else:
            head = ""
            overflow = len(tail) - max_chars
            tail = _tail(message[: max(0, len(message) - overflow)])
        prompt = _assemble([])
    return prompt


class LunaChat(commands.Cog):
    """Answer messages with Luna's personality and per-user memory."""

    def __init__(
        self,
        bot: commands.Bot,
        *,
        completion: CompletionClient,
        policy: TriggerPolicy | None = None,
        cooldown: CooldownTracker | None = None,
        bot_name: str = "Luna",
        memory_limit: int = 6,
        max_prompt_chars: int = 6000,
        privacy: bool = False,
        personality_loader: Callable[[], str] = get_personality_prompt,
    ) -> None:
        self.bot = bot
        self.completion = completion
        self.policy = policy or TriggerPolicy()
        self.cooldown = cooldown or CooldownTracker(5.0)
        self.bot_name = bot_name
        self.memory_limit = memory_limit
        self.max_prompt_chars = max_prompt_chars
        self.privacy = privacy
        self._personality_loader = personality_loader
        memory_db.init_db()

        logger.info(
            "LunaChat initialized: name=%s, memory_limit=%d, cooldown=%.1fs, probability=%.2f",
            self.bot_name,
            self.memory_limit,
            self.cooldown.cooldown_seconds,
            self.policy.reply_probability,
        )

    @classmethod
    def from_settings(cls, bot: commands.Bot, settings: BotSettings) -> LunaChat:
        return cls(
            bot,
            completion=CompletionClient.from_settings(settings),
            policy=TriggerPolicy.from_settings(settings.trigger),
            cooldown=CooldownTracker(settings.trigger.cooldown_seconds),
            bot_name=settings.bot_name,
            memory_limit=settings.memory_limit,
            max_prompt_chars=settings.max_prompt_chars,
            privacy=settings.privacy,
        )

    async def cog_unload(self) -> None:
        await self.completion.aclose()

    # Message inspection

    def _bot_user_id(self) -> int | None:
        return getattr(self.bot.user, "id", None)

    @staticmethod
    def _is_dm(message: discord.Message) -> bool:
        return getattr(message, "guild", None) is None and getattr(message.channel, "type", None) == discord.ChannelType.private

    def _mentions_bot(self, message: discord.Message) -> bool:
        bot_id = self._bot_user_id()
        if bot_id is None:
            return False
        return any(getattr(user, "id", None) == bot_id for user in getattr(message, "mentions", []) or [])

    async def _is_command(self, message: discord.Message) -> bool:
        """True for "!" messages and commands invoked through a mention."""
        if (message.content or "").lstrip().startswith("!"):
            return True
        ctx = await self.bot.get_context(message)
        return ctx.valid

    # Replying

    async def _send_reply(self, message: discord.Message, reply: str) -> None:
        chunks = split_message(reply)
        if not chunks:
            return
        try:
            await message.reply(chunks[0])
            for chunk in chunks[1:]:
                await message.channel.send(chunk)
        except discord.HTTPException:
            logger.exception("Failed to send reply for message %s", getattr(message, "id", None))

    async def respond(self, message: discord.Message, text: str) -> str:
        """Generate, store and send a reply to ``text``; returns the reply."""
        user_id = message.author.id
        user_name = get_display_name(message.author)

        memories = memory_db.get_recent_memories(user_id, self.memory_limit)
        prompt = build_prompt(
            self._personality_loader(),
            memories,
            user_name,
            text,
            bot_name=self.bot_name,
            max_chars=self.max_prompt_chars,
        )

        async with message.channel.typing():
            reply = await self.completion.generate(prompt)

        if reply != self.completion.apology:
            memory_db.add_memory(
                user_id,
                user_name,
                text,
                reply=reply,
                kind=memory_db.KIND_SHORT,
                personality=self.bot_name,
            )

        await self._send_reply(message, reply)
        return reply

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        content = message.content or ""
        if message.author.bot or await self._is_command(message):
            return

        triggered = self.policy.should_respond(
            content=content,
            is_bot_author=message.author.bot,
            is_dm=self._is_dm(message),
            mentions_bot=self._mentions_bot(message),
        )
        if not triggered:
            return

        text = strip_mentions(content, self._bot_user_id())
        if not text:
            return

        if not self.cooldown.try_acquire(message.author.id):
            logger.debug("User %s is on cooldown; skipping", message.author.id)
            return

        if not self.privacy:
            logger.info("Replying to %s: %s", message.author.id, text[:120])

        try:
            await self.respond(message, text)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to handle message %s", getattr(message, "id", None))

    # Memory commands

    @commands.command(name="remember")
    async def remember(self, ctx: commands.Context, *, text: str = "") -> None:
        """Store something for Luna to remember. Usage: !remember <something>"""
        text = text.strip()
        if not text:
            await ctx.send("Usage: !remember <something>")
            return
        memory_db.add_memory(ctx.author.id, get_display_name(ctx.author), text, kind=memory_db.KIND_LONG)
        await ctx.send(f'Got it, I\'ll remember: "{text}"')

    @commands.command(name="recall")
    async def recall(self, ctx: commands.Context) -> None:
        """List what Luna remembers about you."""
        memories = memory_db.get_recent_memories(ctx.author.id, self.memory_limit)
        if not memories:
            await ctx.send("I don't have anything remembered yet.")
            return
        lines = [f"- {record.content}" for record in memories]
        for chunk in split_message("I remember:\n" + "\n".join(lines)):
            await ctx.send(chunk)

    @commands.command(name="forget")
    async def forget(self, ctx: commands.Context) -> None:
        """Delete everything Luna remembers about you."""
        deleted = memory_db.forget_user(ctx.author.id)
        logger.info("Forgot %d memories for user %s", deleted, ctx.author.id)
        await ctx.send("Cleared your memories.")


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(LunaChat.from_settings(bot, load_settings(require_discord=False)))

import os

from discord.ext import commands

MAX_HELP_LEN = 1900  # keep a little margin below Discord 2000 limit


class General(commands.Cog):
    def __init__(self, bot: commands.Bot, bot_name: str = "Luna"):
        self.bot = bot
        self.bot_name = bot_name

    @commands.command()
    async def ping(self, ctx: commands.Context):
        """Responds with Pong!"""
        await ctx.send("Pong!")

    @commands.command(name="help")
    async def help_cmd(self, ctx: commands.Context):
        """Show available commands (<=2000 chars)."""
        name = self.bot_name
        text = (
            f"**{name} Help**\n"
            f"Mention {name}, DM her, or say her name to chat. She remembers your recent messages.\n\n"
            "Memory\n"
            "- `!remember <something>` store a note about you.\n"
            "- `!recall` list what is remembered about you.\n"
            "- `!forget` delete everything remembered about you.\n\n"
            "Other\n"
            "- `!ping` returns `Pong!`.\n"
            "- Replies are rate limited per user by a short cooldown.\n"
        )
        await ctx.send(text[:MAX_HELP_LEN])


async def setup(bot: commands.Bot):
    await bot.add_cog(General(bot, os.getenv("LUNA_BOT_NAME", "Luna")))

import discord
from discord.ext import commands
import logging
import os
from typing import Any, Dict, List, Optional

from .data_manager import DataManager
from .config_manager import ConfigManager
from .result_store import ResultStore
from .quiz_controller import QuizController
from .quiz_session import NOTICE_SECONDS, format_time_left
from .models import SessionResult, normalize_answer

logger = logging.getLogger(__name__)

COLOR_INFO = 0x5865f2
COLOR_SUCCESS = 0x00ff00
COLOR_WARNING = 0xffaa00
COLOR_ERROR = 0xff0000


def resolve_choice(text: str, options: List[str]) -> str:
    """
    Map an option number typed by the user to the option text.

    Text that already names an option is kept, so numeric answers such as
    "4" are not mistaken for option numbers.
    """
    stripped = (text or "").strip()
    if any(normalize_answer(option) == normalize_answer(stripped) for option in options):
        return text
    if options and stripped.isdigit():
        number = int(stripped)
        if 1 <= number <= len(options):
            return options[number - 1]
    return text


def build_question_embed(progress: Dict[str, Any]) -> discord.Embed:
    """Render the current question of a session."""
    embed = discord.Embed(
        title=f"❓ {progress['progress_label']}",
        description=f"**{progress['prompt']}**",
        color=COLOR_INFO
    )

    options = progress.get('options') or []
    if options:
        embed.add_field(
            name="Options",
            value="\n".join(f"`{i}.` {option}" for i, option in enumerate(options, start=1)),
            inline=False
        )

    current = progress.get('current_answer')
    embed.add_field(name="Your answer", value=current if current else "_not answered_", inline=True)
    embed.add_field(name="⏱️ Time Left", value=progress['time_left'], inline=True)
    embed.set_footer(
        text=f"Answered {progress['answered_count']}/{progress['total_questions']} • "
             "/answer to respond • /next • /previous • /submit"
    )
    return embed


def build_result_embed(quiz_name: Optional[str], result: SessionResult) -> discord.Embed:
    """Render the terminal result of a session."""
    embed = discord.Embed(
        title="⏰ Time's up!" if result.timed_out else "🏁 Quiz Complete!",
        description=f"**{quiz_name}**" if quiz_name else None,
        color=COLOR_WARNING if result.timed_out else COLOR_SUCCESS
    )
    embed.add_field(name="Score", value=f"**{result.score}/{result.total}** ({result.percentage:.0f}%)", inline=False)
    if result.timed_out:
        embed.set_footer(text="Unanswered questions were scored as incorrect.")
    return embed


class QuizBot(commands.Bot):
    """Discord bot hosting timed quiz sessions"""

    def __init__(self, config=None):
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.data_manager: Optional[DataManager] = None
        self.config_manager: Optional[ConfigManager] = None
        self.quiz_controller: Optional[QuizController] = None

        # Channel ID -> message showing the countdown
        self._countdown_messages: Dict[int, discord.Message] = {}

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            self.config_manager = ConfigManager()
            if self.app_config:
                for message in self.config_manager.apply_config(self.app_config):
                    logger.warning(f"Configuration value rejected: {message}")

            settings = self.config_manager.get_quiz_settings()
            self.data_manager = DataManager(settings.quiz_directory)
            self.data_manager.load_quiz_files()

            self.quiz_controller = QuizController(
                self.data_manager,
                self.config_manager,
                ResultStore(settings.results_file)
            )

            self.log_startup_report()
            await self.setup_commands()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def log_startup_report(self):
        """Log configuration health and the quiz loading summary."""
        logger.info(self.config_manager.get_settings_summary())

        health = self.config_manager.get_configuration_health_check()
        for warning in health['warnings']:
            logger.warning(warning)
        for error in health['errors']:
            logger.error(error)

        summary = self.data_manager.get_loading_summary()
        logger.info(f"Loaded {summary['total_quizzes']} quizzes from {summary['quiz_directory']}: "
                    f"{', '.join(summary['available_quizzes']) or 'none'}")
        if summary['sample_created']:
            logger.info("Quiz directory was empty, a sample quiz was written")
        for error in summary['errors']:
            logger.warning(f"Quiz loading problem: {error}")

    async def close(self):
        """Stop every running quiz before disconnecting."""
        if self.quiz_controller is not None:
            for channel_id in list(self.quiz_controller.get_all_active_sessions()):
                self.quiz_controller.stop_quiz(channel_id)
        self._countdown_messages.clear()
        await super().close()

    async def setup_commands(self):
        """Register all slash commands"""
        @self.tree.command(name="help", description="Display available commands and their descriptions")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="quizzes", description="List the quizzes you can start")
        async def quizzes_command(interaction: discord.Interaction):
            await self.handle_quizzes(interaction)

        @self.tree.command(name="start", description="Start a timed quiz in this channel")
        async def start_command(interaction: discord.Interaction, quiz_name: Optional[str] = None):
            await self.handle_start(interaction, quiz_name)

        @self.tree.command(name="answer", description="Answer the current question (text or option number)")
        async def answer_command(interaction: discord.Interaction, text: str):
            await self.handle_answer(interaction, text)

        @self.tree.command(name="next", description="Go to the next question")
        async def next_command(interaction: discord.Interaction):
            await self.handle_next(interaction)

        @self.tree.command(name="previous", description="Go back to the previous question")
        async def previous_command(interaction: discord.Interaction):
            await self.handle_previous(interaction)

        @self.tree.command(name="submit", description="Submit your answers for scoring")
        async def submit_command(interaction: discord.Interaction):
            await self.handle_submit(interaction)

        @self.tree.command(name="stop", description="Stop the current quiz without scoring")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @self.tree.command(name="status", description="Show the current question and time left")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    # ------------------------------------------------------------------
    # Command handlers

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        embed = discord.Embed(
            title="📚 QuizPlay Commands",
            description="Answer every question before the time runs out.",
            color=COLOR_INFO
        )
        embed.add_field(
            name="🎮 Quiz",
            value=(
                "`/quizzes` - List available quizzes\n"
                "`/start [quiz_name]` - Start a quiz\n"
                "`/answer <text>` - Answer the current question\n"
                "`/next` / `/previous` - Move between questions\n"
                "`/submit` - Submit for scoring\n"
                "`/stop` - Stop without scoring\n"
                "`/status` - Show the current question"
            ),
            inline=False
        )
        embed.add_field(
            name="⏱️ Time Limit",
            value=f"{format_time_left(240)} for up to 5 questions, {format_time_left(480)} for longer quizzes. "
                  "When time runs out your answers are submitted automatically.",
            inline=False
        )
        embed.add_field(name="⚙️ Settings", value=self.config_manager.get_settings_summary(), inline=False)
        await self._send(interaction, embed=embed, ephemeral=True)

    async def handle_quizzes(self, interaction: discord.Interaction):
        """Handle /quizzes command"""
        quizzes = self.quiz_controller.get_available_quizzes()
        if not quizzes:
            await self.send_no_quizzes_response(interaction)
            return

        lines = [
            f"• **{name}** ({self.data_manager.get_question_count(name)} questions)"
            for name in quizzes
        ]
        embed = discord.Embed(
            title=f"📋 Available Quizzes ({self.data_manager.get_quiz_count()})",
            description="\n".join(lines),
            color=COLOR_INFO
        )
        if self.data_manager.has_load_errors():
            embed.add_field(
                name="⚠️ Loading Issues",
                value=f"{len(self.data_manager.get_load_errors())} quiz files could not be loaded. Check logs for details.",
                inline=False
            )
        await self._send(interaction, embed=embed, ephemeral=True)

    async def handle_start(self, interaction: discord.Interaction, quiz_name: Optional[str] = None):
        """Handle /start command"""
        channel_id = interaction.channel_id
        available = self.quiz_controller.get_available_quizzes()

        if quiz_name is None:
            if not available:
                await self.send_no_quizzes_response(interaction)
                return
            quiz_name = available[0]
        elif not self.data_manager.quiz_exists(quiz_name):
            await self.send_error_response(
                interaction,
                f"Quiz **{quiz_name}** not found. Use `/quizzes` to see what is available.",
                "❌ Quiz Start Failed"
            )
            return

        result = self.quiz_controller.start_quiz(channel_id, quiz_name)
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Quiz Start Failed")
            return

        progress = result['session_info']
        embed = build_question_embed(progress)
        embed.set_author(name=f"🎯 {quiz_name} • {progress['total_questions']} questions")

        try:
            await interaction.response.send_message(embed=embed)
            self._countdown_messages[channel_id] = await interaction.original_response()
        except discord.HTTPException as e:
            logger.error(f"Failed to present quiz in channel {channel_id}: {e}")
            self.quiz_controller.stop_quiz(channel_id)
            return

        refresh = self.config_manager.get_display_refresh_seconds()

        async def on_tick(remaining: int):
            if remaining % refresh == 0:
                await self._refresh_countdown(channel_id)

        async def on_expiry(session_result: SessionResult):
            self._countdown_messages.pop(channel_id, None)
            await self._announce_result(interaction.channel, quiz_name, session_result)

        self.quiz_controller.start_countdown(channel_id, on_tick, on_expiry)

    async def handle_answer(self, interaction: discord.Interaction, text: str):
        """Handle /answer command"""
        channel_id = interaction.channel_id
        progress = self.quiz_controller.get_session_progress(channel_id)
        if progress is not None:
            text = resolve_choice(text, progress['options'])

        result = self.quiz_controller.record_answer(channel_id, text)
        if result.get('error') == 'no_session':
            await self.send_error_response(interaction, result['user_message'], "❌ No Quiz")
            return

        await self._send(interaction, content=result['user_message'], ephemeral=True)

    async def handle_next(self, interaction: discord.Interaction):
        """Handle /next command"""
        await self._handle_navigation(interaction, self.quiz_controller.next_question(interaction.channel_id))

    async def handle_previous(self, interaction: discord.Interaction):
        """Handle /previous command"""
        await self._handle_navigation(interaction, self.quiz_controller.previous_question(interaction.channel_id))

    async def handle_submit(self, interaction: discord.Interaction):
        """Handle /submit command"""
        channel_id = interaction.channel_id
        result = self.quiz_controller.submit_quiz(channel_id)

        if result.get('error') == 'no_session':
            await self.send_error_response(interaction, result['user_message'], "❌ No Quiz")
            return

        if not result['success']:
            missing = ", ".join(str(number) for number in result.get('unanswered', []))
            message = result['message'] + (f"\nUnanswered: {missing}" if missing else "")
            await self.send_notice(interaction, message)
            return

        self._countdown_messages.pop(channel_id, None)
        await self._send(interaction, embed=build_result_embed(result['quiz_name'], result['result']))

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /stop command"""
        channel_id = interaction.channel_id
        result = self.quiz_controller.stop_quiz(channel_id)
        self._countdown_messages.pop(channel_id, None)

        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ No Quiz")
            return

        embed = discord.Embed(title="🛑 Quiz Stopped", description=result['user_message'], color=COLOR_WARNING)
        await self._send(interaction, embed=embed)

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        progress = self.quiz_controller.get_session_progress(interaction.channel_id)
        if progress is None:
            await self.send_info_response(
                interaction,
                "No quiz is running in this channel. Use `/start` to begin one.",
                "ℹ️ No Active Quiz"
            )
            return

        await self._send(interaction, embed=build_question_embed(progress), ephemeral=True)

    # ------------------------------------------------------------------
    # Rendering helpers

    async def _handle_navigation(self, interaction: discord.Interaction, result: Dict[str, Any]):
        if result.get('error') == 'no_session':
            await self.send_error_response(interaction, result['user_message'], "❌ No Quiz")
            return

        if not result['success']:
            await self.send_notice(interaction, result['message'])
            return

        channel_id = interaction.channel_id
        try:
            await interaction.response.send_message(embed=build_question_embed(result['session_info']))
            self._countdown_messages[channel_id] = await interaction.original_response()
        except discord.HTTPException as e:
            logger.error(f"Failed to present question in channel {channel_id}: {e}")

    async def _refresh_countdown(self, channel_id: int):
        message = self._countdown_messages.get(channel_id)
        progress = self.quiz_controller.get_session_progress(channel_id)
        if message is None or progress is None:
            return
        try:
            await message.edit(embed=build_question_embed(progress))
        except discord.NotFound:
            self._countdown_messages.pop(channel_id, None)
        except discord.HTTPException as e:
            logger.warning(f"Failed to refresh countdown in channel {channel_id}: {e}")

    async def _announce_result(self, channel, quiz_name: str, result: SessionResult):
        if channel is None:
            return
        try:
            await channel.send(embed=build_result_embed(quiz_name, result))
        except discord.HTTPException as e:
            logger.error(f"Failed to announce result for '{quiz_name}': {e}")

    async def _send(self, interaction: discord.Interaction, **kwargs):
        """Respond to an interaction, following up if a response was already sent."""
        try:
            if interaction.response.is_done():
                kwargs.pop('delete_after', None)
                await interaction.followup.send(**kwargs)
            else:
                await interaction.response.send_message(**kwargs)
        except discord.HTTPException as e:
            logger.error(f"Failed to send response: {e}")

    async def send_notice(self, interaction: discord.Interaction, message: str):
        """Show a validation notice that disappears after its display window."""
        embed = discord.Embed(title="⚠️ Hold on", description=message, color=COLOR_WARNING)
        await self._send(interaction, embed=embed, ephemeral=True, delete_after=NOTICE_SECONDS)

    async def send_no_quizzes_response(self, interaction: discord.Interaction):
        """Explain that nothing is playable, listing the first loading errors."""
        message = "No quiz files found or all files failed to load."
        errors = self.data_manager.get_load_errors()
        if errors:
            error_text = "\n".join(errors[:3])
            if len(errors) > 3:
                error_text += f"\n... and {len(errors) - 3} more"
            message += f"\n```\n{error_text}\n```"
        await self.send_error_response(interaction, message, "❌ No Quizzes Available")

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send error response to user with fallback handling"""
        try:
            embed = discord.Embed(title=title, description=message, color=COLOR_ERROR)
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Failed to send error embed: {e}")
            try:
                simple_message = f"{title}: {message}"
                if interaction.response.is_done():
                    await interaction.followup.send(simple_message, ephemeral=True)
                else:
                    await interaction.response.send_message(simple_message, ephemeral=True)
            except discord.HTTPException:
                logger.error("Failed to send fallback error message")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        embed = discord.Embed(title=title, description=message, color=COLOR_INFO)
        await self._send(interaction, embed=embed, ephemeral=True)


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting QuizPlay bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()

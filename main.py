#!/usr/bin/env python3
"""
QuizPlay - Main Entry Point

Runs the Discord bot hosting timed quiz sessions.

Usage:
    python main.py [path/to/config.json]

The bot token comes from the DISCORD_BOT_TOKEN environment variable or, if
that is unset, from the "bot.token" field of the config file. Quiz files are
read from "quiz.quiz_directory"; the latest score is written to
"quiz.results_file".
"""

import asyncio
import sys
import os
import json
import logging
from pathlib import Path

PLACEHOLDER_TOKEN = "YOUR_DISCORD_BOT_TOKEN_HERE"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class StartupError(Exception):
    """Configuration problem that prevents the bot from starting."""
    pass


def load_config(config_path: Path = Path("config.json")) -> dict:
    """Read the JSON config file."""
    if not config_path.exists():
        raise StartupError(f"{config_path} not found. Create it from the example in the repository.")

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise StartupError(f"Invalid JSON in {config_path}: {e}") from e
    except OSError as e:
        raise StartupError(f"Cannot read {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise StartupError(f"{config_path} must contain a JSON object")
    return config


def get_bot_token(config: dict) -> str:
    """Environment first, then config file."""
    token = os.getenv('DISCORD_BOT_TOKEN') or config.get('bot', {}).get('token')
    if not token or token == PLACEHOLDER_TOKEN:
        raise StartupError(
            "Discord bot token not configured. Set DISCORD_BOT_TOKEN "
            "or fill in 'bot.token' in the config file."
        )
    return token


def setup_logging_from_config(config: dict) -> Path:
    """
    Log to the console, to bot.log and (errors only) to errors.log.

    Returns:
        The log directory
    """
    log_config = config.get('logging', {})
    log_level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)
    log_directory = Path(log_config.get('log_directory', './logs/'))
    log_directory.mkdir(parents=True, exist_ok=True)

    error_handler = logging.FileHandler(log_directory / "errors.log", encoding='utf-8')
    error_handler.setLevel(logging.ERROR)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "bot.log", encoding='utf-8'),
            error_handler
        ]
    )

    # discord.py logs every gateway event at INFO
    for noisy in ('discord', 'discord.http', 'discord.gateway'):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return log_directory


async def run_bot_with_config(config: dict, token: str):
    from quizplay.bot import run_bot
    await run_bot(token, config)


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    config_path = Path(argv[0]) if argv else Path("config.json")

    try:
        config = load_config(config_path)
        log_directory = setup_logging_from_config(config)
        token = get_bot_token(config)
    except StartupError as e:
        print(f"❌ {e}")
        return 1

    logging.getLogger(__name__).info(f"Starting QuizPlay with {config_path}, logs in {log_directory}")
    print("🤖 Starting QuizPlay bot...")
    try:
        asyncio.run(run_bot_with_config(config, token))
    except KeyboardInterrupt:
        print("\n👋 Bot stopped by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""CLI entry point for finn-bot."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from finn_bot.ai.content import load_attachment
from finn_bot.app import FinnApp
from finn_bot.config import AppConfig, load_config
from finn_bot.core.errors import FinnError
from finn_bot.log import setup_logging
from finn_bot.storage.models import Attachment


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="finn-bot",
        description="Multi-provider chat assistant with model-management tools",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def _add_config_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
        p.add_argument("-e", "--env", default=".env", help="Path to .env file")

    _add_config_args(subparsers.add_parser("config-check", help="Validate configuration"))
    _add_config_args(subparsers.add_parser("models", help="List configured model aliases"))

    catalog_parser = subparsers.add_parser("catalog", help="Search the OpenRouter model catalog")
    _add_config_args(catalog_parser)
    catalog_parser.add_argument("-q", "--query", default=None, help="Search text")
    catalog_parser.add_argument("-n", "--limit", type=int, default=None, help="Max results (1-25)")
    catalog_parser.add_argument("--sort", choices=["recent", "relevance"], default=None)
    catalog_parser.add_argument("--refresh", action="store_true", help="Refresh the cache first")

    chat_parser = subparsers.add_parser("chat", help="Chat from the terminal")
    _add_config_args(chat_parser)
    chat_parser.add_argument("-u", "--user", default="local-user", help="User id to chat as")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    config = _load(args.config, args.env)

    if args.command == "config-check":
        _check_config(args.config, config)
    elif args.command == "models":
        asyncio.run(_list_models(config))
    elif args.command == "catalog":
        asyncio.run(_search_catalog(config, args.query, args.limit, args.sort, args.refresh))
    elif args.command == "chat":
        setup_logging(config.log_level, config.json_logs)
        asyncio.run(_chat(config, args.user))


def _load(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Copy config.example.yaml to config.yaml first")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _check_config(config_path: str, config: AppConfig) -> None:
    """Print a configuration summary."""
    print(f"Configuration valid: {config_path}")
    print(f"  Data directory : {config.data_dir}")
    print(f"  Database       : {config.storage.db_path}")
    print(f"  Catalog cache  : {config.catalog_path}")
    print(f"  Default model  : {config.default_model}")
    anthropic_key = bool(config.anthropic and config.anthropic.api_key)
    print(f"  Anthropic key  : {'set' if anthropic_key else 'missing'}")
    print(f"  OpenRouter key : {'set' if config.openrouter.api_key else 'missing'}")


async def _list_models(config: AppConfig) -> None:
    app = FinnApp(config)
    await app.start()
    try:
        models = await app.router.all()
        print("Model aliases")
        print("=" * 50)
        for m in models:
            state = "" if m.enabled else "  (disabled)"
            print(f"  {m.id:<16} {m.provider:<11} {m.model_id}{state}")
    finally:
        await app.stop()


async def _search_catalog(
    config: AppConfig, query: str | None, limit: int | None, sort: str | None, refresh: bool
) -> None:
    app = FinnApp(config)
    try:
        results = await app.catalog.search(query=query, limit=limit, sort=sort, refresh=refresh)  # type: ignore[arg-type]
    except FinnError as e:
        print(f"Catalog error: {e}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(results, indent=2))


async def _chat(config: AppConfig, user_id: str) -> None:
    app = FinnApp(config)
    await app.start()
    print("Type a message, /attach PATH to add a file to the next message, or 'exit' to quit.")
    pending: list[Attachment] = []
    try:
        while True:
            try:
                text = await asyncio.to_thread(input, "> ")
            except EOFError:
                break
            if text.strip().lower() in ("exit", "quit"):
                break
            if text.startswith("/attach "):
                try:
                    attachment = load_attachment(text[len("/attach "):].strip())
                except OSError as e:
                    print(f"Cannot attach file: {e}")
                    continue
                pending.append(attachment)
                print(f"Attached {attachment.filename} ({attachment.kind})")
                continue
            if not text.strip() and not pending:
                continue
            reply = await app.handler.handle(
                user_id=user_id, text=text, channel_id="cli", attachments=tuple(pending)
            )
            pending.clear()
            print(reply)
    finally:
        await app.stop()


if __name__ == "__main__":
    main()

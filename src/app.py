"""Application entry point for the DM auto-responder."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint

import settings
from adapters.graph_sender import GraphApiSender
from adapters.json_dedup_store import JsonDedupStore, load_or_recover
from adapters.telegram_inbox import TelegramInboxClient
from adapters.webhook_app import build_server, create_app
from core.config import AppConfig
from core.errors import ConfigError, DedupStoreError
from core.processor import ConversationProcessor
from core.scheduler import PollScheduler
from login import authorize

NAME = "AUTOREPLY"
FONT = "tarty-1"

# Dedup keys are namespaced per channel; user ids from different platforms may collide.
TELEGRAM_CHANNEL = "telegram"
WEBHOOK_CHANNEL = "meta"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: dict) -> None:
    if not config.get("enabled", True):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path") or os.path.join(settings.PROJECT_ROOT, "logs", "autoresponder.log")
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers, force=True)


async def _connect_inbox(config: AppConfig) -> TelegramInboxClient:
    """Import the saved session, log in if needed and export the fresh session."""

    inbox = TelegramInboxClient(
        credentials=config.credentials,
        session_path=config.session_path,
        messages_per_thread=config.messages_per_thread,
        dialogs_per_refresh=config.dialogs_per_refresh,
    )
    inbox.import_session()
    await inbox.client.connect()
    await authorize(inbox.client, config.credentials.phone)
    inbox.export_session()
    return inbox


def _build_graph_sender(config: AppConfig) -> GraphApiSender:
    if not config.webhook.access_token:
        raise RuntimeError("META_ACCESS_TOKEN is required when the webhook is enabled")
    return GraphApiSender(
        access_token=config.webhook.access_token,
        api_version=config.webhook.graph_api_version,
    )


def _install_stop_signal(scheduler: PollScheduler) -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, scheduler.stop)
    except (NotImplementedError, RuntimeError):
        # Signal handlers are unavailable on some platforms (e.g. Windows).
        pass


def _save_store(store: JsonDedupStore) -> None:
    try:
        store.save()
    except DedupStoreError as exc:
        logging.getLogger(__name__).error("Error saving responded users during cleanup: %s", exc)


async def _run_async(config: AppConfig, poll: bool, serve: bool, once: bool = False) -> None:
    logger = logging.getLogger(__name__)

    # One store is shared by both paths so a user is never replied to twice.
    store = load_or_recover(config.dedup_path)
    logger.info("%s reply rules are loaded", len(config.rules))

    inbox: Optional[TelegramInboxClient] = None
    scheduler: Optional[PollScheduler] = None
    server = None

    try:
        if poll:
            inbox = await _connect_inbox(config)
            poll_processor = ConversationProcessor(
                config.rules, config.default_reply, store, inbox, channel=TELEGRAM_CHANNEL
            )
            scheduler = PollScheduler(inbox, poll_processor, store, config.poll_interval_seconds)

        if serve:
            webhook_processor = ConversationProcessor(
                config.rules, config.default_reply, store, _build_graph_sender(config), channel=WEBHOOK_CHANNEL
            )
            app = create_app(
                webhook_processor,
                verify_token=config.webhook.verify_token,
                app_secret=config.webhook.app_secret,
                store=store,
            )
            server = build_server(app, config.webhook.host, config.webhook.port)
            logger.info("Webhook server listening on %s:%s", config.webhook.host, config.webhook.port)

        if scheduler is not None and once:
            await scheduler.run_cycle()
            return

        if server is None:
            if scheduler is not None:
                _install_stop_signal(scheduler)
                await scheduler.run()
            return

        poll_task = asyncio.create_task(scheduler.run()) if scheduler is not None else None
        try:
            await server.serve()
        finally:
            if poll_task is not None:
                scheduler.stop()
                await asyncio.gather(poll_task, return_exceptions=True)
    finally:
        if scheduler is not None:
            scheduler.cleanup()
        else:
            _save_store(store)
        if inbox is not None:
            await inbox.client.disconnect()
        logger.info("Auto-responder stopped")


async def _login_async(config: AppConfig) -> None:
    inbox = await _connect_inbox(config)
    await inbox.client.disconnect()
    print(f"Session saved to {config.session_path}")


def _load_config(path: Optional[str]) -> AppConfig:
    try:
        return settings.load_settings(path)
    except ConfigError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="autoresponder")
    parser.add_argument("--config", help="Path to config.json (defaults to CONFIG_PATH or ./config.json)")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the poller and the webhook server")
    poll_parser = subparsers.add_parser("poll", help="Start only the inbox poller")
    poll_parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    subparsers.add_parser("serve", help="Start only the webhook server")
    subparsers.add_parser("login", help="Authorize the messaging account and save the session")

    args = parser.parse_args(argv)
    config = _load_config(args.config)

    _print_banner()
    _configure_logging(config.logging)
    logger = logging.getLogger(__name__)

    if args.command == "login":
        asyncio.run(_login_async(config))
        return

    if args.command == "poll":
        poll, serve, once = True, False, args.once
    elif args.command == "serve":
        poll, serve, once = False, True, False
    else:
        poll, serve, once = True, config.webhook.enabled, False

    if serve:
        try:
            settings.require_webhook_settings(config)
        except ConfigError as exc:
            raise SystemExit(f"Configuration error: {exc}") from exc

    logger.info("Starting auto-responder (poll=%s, webhook=%s)", poll, serve)
    try:
        asyncio.run(_run_async(config, poll=poll, serve=serve, once=once))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()

"""Application entry point for the scrapwatch notifier."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv
from steam.enums import EResult

import settings
from adapters.discord_webhook_notifier import DiscordWebhookNotifier
from adapters.revolt_notifier import RevoltNotifier
from client import build_client, build_transport
from core.dispatcher import ChangeDispatcher
from core.keyvalues import format_tree, store_tags
from core.models import SessionState
from core.poller import ChangePoller
from core.registry import TrackedAppRegistry
from core.session import SessionManager

NAME = "SCRAPWATCH"
FONT = "tarty-1"


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


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
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
        path = file_cfg.get("path", "logs/scrapwatch.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
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

    logging.basicConfig(level=level, handlers=handlers)
    # The Steam SDK is chatty at INFO.
    logging.getLogger("SteamClient").setLevel(max(level, logging.WARNING))
    logging.getLogger("CMClient").setLevel(max(level, logging.WARNING))


async def _serve(manager: SessionManager) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, manager.request_stop)
        except NotImplementedError:
            # Windows event loops do not support signal handlers.
            pass
    await manager.run()


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting scrapwatch")

    registry = TrackedAppRegistry(settings.TRACKED_APPS)
    logger.info(
        "Tracking %s app(s): %s",
        len(registry),
        ", ".join(f"{registry.name_for(app_id)} ({app_id})" for app_id in registry),
    )

    if not settings.WEBHOOKS:
        logger.warning("No webhooks configured; changes will only be logged")

    # Sinks keyed by destination kind.
    notifiers = {
        DiscordWebhookNotifier.kind: DiscordWebhookNotifier(),
        RevoltNotifier.kind: RevoltNotifier(api_base=settings.REVOLT_API_BASE),
    }
    dispatcher = ChangeDispatcher(
        registry,
        settings.WEBHOOKS,
        notifiers,
        settings.notification_config(),
    )

    state = SessionState()
    transport = build_transport()
    poller = ChangePoller(state, transport, registry, dispatcher)
    manager = SessionManager(state, transport, poller, settings.session_config())

    try:
        asyncio.run(_serve(manager))
    finally:
        transport.close()


def _tags(app_id: int, dump: bool) -> None:
    client = build_client()
    result = client.anonymous_login()
    if result != EResult.OK:
        print(f"Anonymous log on failed: {result!r}")
        return

    try:
        info = client.get_product_info(apps=[app_id], timeout=15) or {}
        app_info = info.get("apps", {}).get(app_id)
        if app_info is None:
            print(f"No product info for app {app_id}")
            return
        if dump:
            print(format_tree(app_info))
            return
        tags = store_tags(app_info)
        if not tags:
            print(f"App {app_id} has no store tags")
            return
        print(", ".join(tags))
    finally:
        client.logout()


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="scrapwatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the watcher")
    tags_parser = subparsers.add_parser(
        "tags",
        help="Print the store tags of an app from its product info.",
    )
    tags_parser.add_argument("app_id", type=int)
    tags_parser.add_argument("--dump", action="store_true", help="Print the whole product info tree")

    args = parser.parse_args(argv)
    if args.command == "tags":
        _tags(args.app_id, args.dump)
        return
    _run()


if __name__ == "__main__":
    main()

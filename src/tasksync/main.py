"""tasksync CLI entry point."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

import structlog
from dotenv import load_dotenv

from tasksync import __version__
from tasksync.config import Settings, dump_settings, load_settings
from tasksync.sync import SyncOrchestrator
from tasksync.tasks import Scanner, apply_limit, filter_by_priority
from tasksync.vault import DailyNoteLocator, FileSystemVault, LinkResolver

# ANSI color codes
RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
BRIGHT_GREEN = "\033[92m"


def configure_logging(level: str) -> None:
    """Configure structlog for the application."""
    # Configure stdlib logging
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_orchestrator(
    settings: Settings, vault: FileSystemVault
) -> SyncOrchestrator:
    """Wire the orchestrator to a filesystem vault."""
    return SyncOrchestrator(
        settings=settings,
        store=vault,
        locator=DailyNoteLocator(
            vault,
            folder=settings.daily_note_folder,
            date_format=settings.daily_note_format,
        ),
        links=LinkResolver(vault),
        scanner=Scanner(vault, settings.exclusion_rules),
    )


def _prepare(root: Path) -> Settings:
    root = root.expanduser().resolve()
    # Load .env into os.environ before settings are read
    env_file = root / ".env"
    if not env_file.exists():
        env_file = root / ".tasksync" / ".env"
    load_dotenv(env_file if env_file.exists() else None)

    settings = load_settings(root)
    configure_logging(settings.log_level)
    return settings


async def serve(root: Path) -> None:
    """Watch the vault and keep the daily note in sync until interrupted.

    Args:
        root: Vault root directory.
    """
    settings = _prepare(root)
    log = structlog.get_logger()

    log.info(
        "config_loaded",
        root=str(settings.vault_root),
        section=settings.section_header,
        daily_note_folder=settings.daily_note_folder or "/",
        log_level=settings.log_level,
    )

    vault = FileSystemVault(settings.vault_root)
    indexed = await vault.build_hints()
    log.info("vault_indexed", documents=indexed)

    orchestrator = build_orchestrator(settings, vault)
    await orchestrator.start()

    # Set up graceful shutdown
    shutdown_event = asyncio.Event()

    def signal_handler():
        log.info("shutdown_signal_received", message="Ctrl+C pressed, shutting down...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    print()
    print(f"{DIM}{'─' * 70}{RESET}")
    print(f"  {BRIGHT_GREEN}✓{RESET} {BOLD}tasksync is watching {vault.root}{RESET}")
    print(f"{DIM}{'─' * 70}{RESET}")
    print()

    await shutdown_event.wait()

    # Cleanup
    log.info("shutting_down")
    await orchestrator.stop()
    vault.close()
    log.info("tasksync_stopped")


async def sync_once(root: Path) -> int:
    """Run a single full sync.

    Args:
        root: Vault root directory.

    Returns:
        Number of tasks appended.
    """
    settings = _prepare(root)
    vault = FileSystemVault(settings.vault_root)
    await vault.build_hints()
    orchestrator = build_orchestrator(settings, vault)

    count = await orchestrator.sync_now()
    print(f"Added {count} task{'s' if count != 1 else ''} to the daily note.")
    return count


async def scan_only(root: Path) -> None:
    """Print eligible tasks without touching the daily note.

    Args:
        root: Vault root directory.
    """
    settings = _prepare(root)
    vault = FileSystemVault(settings.vault_root)
    await vault.build_hints()
    scanner = Scanner(vault, settings.exclusion_rules)

    results = filter_by_priority(
        await scanner.scan_vault(),
        include_elevated=settings.include_highest,
        include_standard=settings.include_high,
    )
    results = apply_limit(results, settings.task_limit)

    print(f"Found {len(results)} priority tasks in {vault.root}:\n")
    for r in results:
        print(f"  [{r.priority.value}] {r.canonical_text}")
        print(f"     {r.source_path}:{r.line_index + 1}")


def show_config(root: Path) -> None:
    """Print the effective configuration."""
    settings = _prepare(root)
    print(dump_settings(settings), end="")


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="tasksync",
        description="Keep priority tasks in sync between notes and the daily note",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    for name, help_text in (
        ("serve", "Watch the vault and sync continuously"),
        ("sync", "Run one full sync now"),
        ("scan", "List priority tasks without syncing"),
        ("config", "Show the effective configuration"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--root",
            type=Path,
            default=Path.cwd(),
            help="Vault root directory (default: current directory)",
        )

    args = parser.parse_args()

    if args.command == "serve":
        asyncio.run(serve(args.root))
    elif args.command == "sync":
        asyncio.run(sync_once(args.root))
    elif args.command == "scan":
        asyncio.run(scan_only(args.root))
    elif args.command == "config":
        show_config(args.root)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()

"""
GateBridge CLI entry point.

Provides command-line interface for running the bridge and utility commands.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from gatebridge import __version__
from gatebridge.config.logging import get_logger, setup_logging
from gatebridge.config.settings import Settings, check_settings, load_settings
from gatebridge.errors import CommandDefinitionError


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog="gatebridge",
        description="REST-to-Discord bridge with a slash-command dispatcher",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"GateBridge {__version__}",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: .env in current directory)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level from config",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    subparsers.add_parser(
        "run",
        help="Run the Discord bot and the REST API",
    )

    # Config command
    subparsers.add_parser(
        "config",
        help="Show current configuration (secrets are never printed)",
    )

    # Commands command
    commands_parser = subparsers.add_parser(
        "commands",
        help="List the built-in slash commands and button handlers",
    )
    commands_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the slash-command definitions as deployed to Discord",
    )

    # Validate command
    validate_parser = subparsers.add_parser(
        "validate",
        help="Check a JSON message body against Discord's limits",
    )
    validate_parser.add_argument(
        "file",
        type=Path,
        help="JSON file holding a POST /api/discord/send body ('-' for stdin)",
    )

    return parser


def cmd_config(settings: Settings) -> int:
    """Show current configuration."""
    logger = get_logger(__name__)

    logger.info("Current Configuration:")
    logger.info("\n=== GateBridge Configuration ===\n")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log Level: {settings.log_level}")
    logger.info(f"Log File: {settings.log_file or 'None (console only)'}")
    logger.info(f"\nBot Token: {'Set' if settings.bot.token else 'Not set'}")
    logger.info(f"Application ID: {settings.bot.application_id or 'Not set'}")
    logger.info(f"Default Guild: {settings.bot.default_guild_id or 'None (global commands)'}")
    logger.info(f"Default Channel: {settings.bot.default_channel_id or 'Not set'}")
    logger.info(f"Sync Commands: {settings.bot.sync_commands}")
    logger.info(
        f"Login: {settings.bot.login_attempts} attempt(s), "
        f"{settings.bot.login_timeout:.0f}s timeout, {settings.bot.login_retry_delay:.0f}s delay"
    )
    logger.info(f"\nResponse Deadline: {settings.dispatch.response_deadline_ms}ms")
    logger.info(f"Dedupe Window: {settings.dispatch.dedupe_window} interaction(s)")
    logger.info(
        f"\nOutbound Attempts: {settings.outbound.max_attempts} "
        f"(backoff {settings.outbound.base_delay}s x{settings.outbound.backoff_multiplier}, "
        f"max {settings.outbound.max_delay}s)"
    )
    logger.info(f"Longest Retry-After Waited: {settings.outbound.max_retry_after}s")
    logger.info(f"\nAPI Bind: {settings.api.host}:{settings.api.port}")
    logger.info(f"API Key: {'Set' if settings.api.api_key else 'Not set'}")
    logger.info(f"Anonymous Access: {settings.api.allow_anonymous}")
    logger.info(
        f"Request Limit: {settings.api.requests_per_window} per "
        f"{settings.api.window_seconds:.0f}s"
    )

    report = check_settings(settings)
    for warning in report.warnings:
        logger.warning(warning)
    for error in report.errors:
        logger.error(error)

    return 0


def cmd_commands(args, settings: Settings) -> int:
    """List the built-in command set."""
    logger = get_logger(__name__)

    from gatebridge.commands.builtin import builtin_commands
    from gatebridge.commands.models import CommandKind
    from gatebridge.gateway.discord_session import DiscordGatewaySession

    descriptors = builtin_commands(DiscordGatewaySession(settings))

    if args.json:
        try:
            payload = [d.to_discord_payload() for d in descriptors if d.kind is CommandKind.SLASH]
        except CommandDefinitionError as e:
            logger.error(f"Invalid command definition: {e.message}")
            return 1
        print(json.dumps(payload, indent=2))
        return 0

    print("\n=== Slash commands ===\n")
    for descriptor in descriptors:
        if descriptor.kind is not CommandKind.SLASH:
            continue
        options = " ".join(
            f"{p.name}:<{p.type.value}>" if p.required else f"[{p.name}:<{p.type.value}>]"
            for p in descriptor.parameters
        )
        print(f"/{descriptor.name} {options}".rstrip())
        print(f"    {descriptor.description}")

    print("\n=== Button handlers (custom_id) ===\n")
    for descriptor in descriptors:
        if descriptor.kind is CommandKind.COMPONENT:
            print(f"{descriptor.name}")
            print(f"    {descriptor.description}")

    return 0


def cmd_validate(args) -> int:
    """Run the payload validator over a JSON file."""
    from gatebridge.messages.validator import validate_message

    try:
        text = sys.stdin.read() if str(args.file) == "-" else args.file.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Cannot read {args.file}: {e}", file=sys.stderr)
        return 1

    try:
        body = json.loads(text)
    except json.JSONDecodeError as e:
        print(f"INVALID_JSON: {e}")
        return 1

    error = validate_message(body)
    if error is not None:
        print(f"{error.code}: {error.message}")
        if error.details:
            print(json.dumps(error.details, indent=2))
        return 1

    print("OK: message is valid")
    return 0


def cmd_run(settings: Settings) -> int:
    """Start the Discord bot and the REST API."""
    logger = get_logger(__name__)

    report = check_settings(settings)
    for warning in report.warnings:
        logger.warning(warning)
    if not report.ok:
        for error in report.errors:
            logger.error(error)
        logger.error("Configuration is incomplete. Add the missing values to your .env file.")
        return 1

    from gatebridge.service import BridgeService

    async def _run() -> None:
        await BridgeService(settings).run()

    asyncio.run(_run())
    return 0


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    # validate needs no configuration
    if args.command == "validate":
        return cmd_validate(args)

    # Load settings
    try:
        settings = load_settings(env_file=args.env_file)
    except Exception as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        return 1

    # Override log level if specified
    if args.log_level:
        settings.log_level = args.log_level

    # Setup logging
    setup_logging(settings)

    # Execute command
    if args.command == "config":
        return cmd_config(settings)
    elif args.command == "run":
        return cmd_run(settings)
    elif args.command == "commands":
        return cmd_commands(args, settings)
    else:
        # Default: show help
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())

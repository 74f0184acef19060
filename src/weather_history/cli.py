"""
Command-line interface for the application.

This module provides the main entry point for the CLI. It is the display
collaborator: it triggers refreshes, shows the stored history and edits the
settings file.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from weather_history import __version__
from weather_history.config import get_settings, load_user_settings, save_user_settings
from weather_history.flows.refresh import build_controller, refresh_weather
from weather_history.renderers.summary import build_summary, render_summary_text
from weather_history.schemas import LocationKey, NoticeKind, RetentionChoice, Units


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="weather-history",
        description="Rate-limited current weather with a local observation history",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'refresh' command - fetch new weather if allowed
    subparsers.add_parser("refresh", help="Fetch the latest weather if allowed")

    # 'show' command - display stored history
    show_parser = subparsers.add_parser("show", help="Show stored weather history")
    show_parser.add_argument(
        "--select",
        type=int,
        default=0,
        help="Index of the record to show in detail (default: 0, newest)",
    )

    # 'info' command
    subparsers.add_parser("info", help="Show application info")

    # 'config' command - show or edit the settings file
    config_parser = subparsers.add_parser("config", help="Show or edit settings")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("show", help="Print current settings")
    set_parser = config_sub.add_parser("set", help="Change settings")
    set_parser.add_argument("--api-key", type=str, default=None)
    set_parser.add_argument("--units", choices=[u.value for u in Units], default=None)
    set_parser.add_argument("--city", type=str, default=None)
    set_parser.add_argument("--state", type=str, default=None)
    set_parser.add_argument("--country", type=str, default=None)
    set_parser.add_argument(
        "--retention",
        type=int,
        choices=[c.value for c in RetentionChoice],
        default=None,
        help="0=1 day, 1=7 days, 2=31 days, 3=356 days, 4=never delete",
    )

    return parser


def cmd_refresh(_args: argparse.Namespace) -> int:
    """Handle the 'refresh' command."""
    result = asyncio.run(refresh_weather(get_settings()))
    failed = any(NoticeKind(n["kind"]).is_error for n in result["notices"])
    return 1 if failed else 0


def cmd_show(args: argparse.Namespace) -> int:
    """Handle the 'show' command: load cached records without calling the API."""
    app = get_settings()
    user = load_user_settings(app.settings_file)
    controller = build_controller(user, app)

    for notice in asyncio.run(controller.load()):
        print(notice.message)

    if controller.records:
        try:
            controller.select(args.select)
        except IndexError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    print(render_summary_text(build_summary(controller, user.units)), end="")
    return 0


def cmd_info(_args: argparse.Namespace) -> int:
    """Handle the 'info' command."""
    settings = get_settings()
    print(f"Application: {settings.app_name}")
    print(f"Version: {__version__}")
    print(f"Environment: {settings.app_env}")
    print(f"Data directory: {settings.data_dir}")
    print(f"Settings file: {settings.settings_file}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    app = get_settings()
    user = load_user_settings(app.settings_file)

    if args.config_command == "set":
        location = user.location.model_dump()
        for field in ("city", "state", "country"):
            value = getattr(args, field)
            if value is not None:
                location[field] = value

        try:
            new_location = LocationKey(**location)
        except ValidationError as e:
            print(f"Error: invalid location: {e.errors()[0]['msg']}", file=sys.stderr)
            return 1

        update: dict[str, object] = {"location": new_location}
        if args.api_key is not None:
            update["api_key"] = args.api_key
        if args.units is not None:
            update["units"] = Units(args.units)
        if args.retention is not None:
            update["delete_after_choice"] = RetentionChoice(args.retention)

        changed_location = new_location != user.location
        user = user.model_copy(update=update)
        save_user_settings(user, app.settings_file)
        print(f"Saved settings to {app.settings_file}")
        if changed_location:
            print("Changed location.")

    print(f"API key: {'set' if user.has_api_key else 'not set'}")
    print(f"Units: {user.units.value}")
    print(f"Location: {user.location.pretty}")
    print(f"Delete after: {user.delete_after_choice.label}")
    return 0


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.debug or get_settings().debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "refresh": cmd_refresh,
        "show": cmd_show,
        "info": cmd_info,
        "config": cmd_config,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())

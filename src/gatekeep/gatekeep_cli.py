#!/usr/bin/env python3
"""
Gatekeep-CLI - Command Line Interface
Run availability checks, phone verification and quota bookkeeping from a terminal.
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import List, Optional

from gatekeep.config import (
    APP_NAME, APP_VERSION, APP_DESCRIPTION, OTP_METHODS, STATUS_MESSAGES, Settings, load_settings
)
from gatekeep.core.counter_store import JsonCounterStore
from gatekeep.core.models import CheckResult, RateLimitStatus
from gatekeep.core.rate_limiter import RateLimiter
from gatekeep.core.uniqueness import phone_checker, username_checker
from gatekeep.core.verification import PhoneVerifier
from gatekeep.services import create_authority
from gatekeep.utils import compose_full_phone, format_duration
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.panel import Panel
from rich.prompt import Prompt
from rich import box


console = Console()

STATUS_STYLES = {
    'idle': 'dim',
    'checking': 'cyan',
    'available': 'green',
    'taken': 'red',
    'invalid': 'yellow',
}


class ConsoleUI:
    """Rich-based console UI for the CLI."""

    @staticmethod
    def print_banner():
        console.print(Panel.fit(f"[bold cyan]{APP_NAME}[/] CLI v{APP_VERSION}\n[dim]{APP_DESCRIPTION}[/]", border_style="cyan"))

    @staticmethod
    def print_check_result(field: str, result: CheckResult):
        style = STATUS_STYLES.get(result.status, 'white')
        icon = STATUS_MESSAGES.get(result.status, '')
        body = f"{icon} [bold {style}]{result.status.upper()}[/]  {result.checked_value}"
        if result.message:
            body += f"\n[dim]{result.message}[/]"
        console.print(Panel.fit(body, title=f"{field.capitalize()} check", border_style=style))

    @staticmethod
    def print_quota_table(statuses: List[RateLimitStatus]):
        table = Table(title="Daily Action Quotas", box=box.SIMPLE_HEAD, expand=False)
        table.add_column("Action", style="bold")
        table.add_column("Remaining", justify="right")
        table.add_column("Daily limit", justify="right")
        table.add_column("State")
        table.add_column("Resets in", justify="right")
        now = datetime.now()
        for status in statuses:
            state = "[red]LIMIT REACHED[/]" if status.is_limit_reached else "[green]OK[/]"
            resets_in = format_duration(int((status.resets_at - now).total_seconds())) if status.resets_at else ""
            table.add_row(status.kind, str(status.remaining), str(status.daily_limit), state, resets_in)
        console.print(table)

    @staticmethod
    def print_message(message: Optional[str], style: str = "white"):
        if message:
            console.print(f"[{style}]{message}[/]")


def setup_logging(verbose: bool = False):
    """Setup logging configuration.
    WARNING by default, DEBUG with --verbose. Route logs through Rich.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    handler = RichHandler(
        console=console,
        show_time=True,
        show_path=verbose,
        rich_tracebacks=verbose,
        markup=False,
    )
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
    # Quiet noisy libraries unless verbose
    for name in ("urllib3", "requests", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING if not verbose else logging.INFO)


def validate_args(args) -> bool:
    """Validate command line arguments."""
    actions = [args.check_username, args.check_phone, args.verify_phone, args.record_action, args.reset_quota]
    if not any(a is not None for a in actions) and not args.show_quota:
        print("Nothing to do: choose one of --check-username, --check-phone, --verify-phone or a quota option")
        return False

    if args.verify_phone is not None and not args.user_id:
        print("--verify-phone requires --user-id")
        return False

    if args.timeout is not None and args.timeout < 1:
        print("Timeout must be a positive integer")
        return False

    return True


def build_settings(args) -> Settings:
    settings = load_settings(args.config)
    if args.api_url:
        settings.api_url = args.api_url
    if args.state_file:
        settings.state_file = args.state_file
    if args.timeout is not None:
        settings.timeout = args.timeout
    return settings


async def run_check(field: str, value: str, settings: Settings) -> int:
    """One immediate availability check. Exit code 0 only when available."""
    authority = create_authority(settings)
    factory = username_checker if field == 'username' else phone_checker
    checker = factory(authority, delay_ms=settings.debounce_ms)
    try:
        with console.status(f"Checking {field}...", spinner="dots"):
            result = await checker.check(value)
    finally:
        checker.close()
        authority.close()
    ConsoleUI.print_check_result(field, result)
    return 0 if result.status == 'available' else 1


async def run_verification(args, settings: Settings) -> int:
    """Interactive OTP flow: existence check, channel choice, code entry."""
    authority = create_authority(settings)
    verifier = PhoneVerifier(authority, args.user_id)
    full_phone = compose_full_phone(args.dial_code or "", args.verify_phone)
    try:
        with console.status(f"Checking {full_phone}...", spinner="dots"):
            started = await verifier.start(args.verify_phone, args.dial_code or "")
        if not started:
            ConsoleUI.print_message(verifier.snapshot()['message'], "red")
            return 1

        method = args.method
        while verifier.state is not None:
            if verifier.state == 'method':
                if method is None:
                    method = Prompt.ask("Send code via", choices=list(OTP_METHODS), default="sms")
                with console.status(f"Sending code via {method}...", spinner="dots"):
                    sent = await verifier.send(method)
                ConsoleUI.print_message(verifier.snapshot()['message'], "green" if sent else "red")
                if not sent:
                    if Prompt.ask("Try again?", choices=["y", "n"], default="y") == "n":
                        return 1
                method = None
                continue

            code = Prompt.ask("Enter the 6-digit code ([bold]m[/] to change method, [bold]q[/] to quit)")
            if code.strip().lower() == 'q':
                return 1
            if code.strip().lower() == 'm':
                verifier.switch_method()
                continue
            with console.status("Validating code...", spinner="dots"):
                verified = await verifier.validate(code)
            if verified:
                ConsoleUI.print_message(verifier.snapshot()['message'], "bold green")
                return 0
            ConsoleUI.print_message(verifier.snapshot()['message'], "red")
        return 1
    except (KeyboardInterrupt, EOFError):
        console.print("\n[yellow]Verification cancelled by user[/]")
        return 1
    finally:
        verifier.close()
        authority.close()


def run_quota(args, settings: Settings) -> int:
    limiter = RateLimiter(JsonCounterStore(settings.state_path), limits=settings.daily_limits)
    try:
        if args.reset_quota:
            limiter.reset(args.reset_quota)
        if args.record_action:
            status = limiter.record_action(args.record_action)
            if status.is_limit_reached:
                ConsoleUI.print_message(f"'{status.kind}' daily limit reached", "yellow")
        kinds = sorted(settings.daily_limits)
        ConsoleUI.print_quota_table([limiter.status(kind) for kind in kinds])
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main function."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if not validate_args(args):
        return 1

    try:
        settings = build_settings(args)
    except (OSError, ValueError) as e:
        print(f"Error loading configuration: {e}")
        return 1

    if not args.no_banner:
        ConsoleUI.print_banner()

    if args.check_username is not None:
        return asyncio.run(run_check('username', args.check_username, settings))
    if args.check_phone is not None:
        value = compose_full_phone(args.dial_code or "", args.check_phone)
        return asyncio.run(run_check('phone', value, settings))
    if args.verify_phone is not None:
        return asyncio.run(run_verification(args, settings))
    return run_quota(args, settings)


def create_argument_parser():
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        description=f"{APP_NAME} CLI - {APP_DESCRIPTION}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Is a username free?
  %(prog)s --check-username john_doe1

  # Is a phone number already registered?
  %(prog)s --check-phone 3001234567 --dial-code +57

  # Verify a phone number with a one-time code
  %(prog)s --verify-phone 3001234567 --dial-code +57 --user-id 42 --method whatsapp

  # Show remaining block/report quota, or count one block
  %(prog)s --show-quota
  %(prog)s --record-action block
        """
    )

    parser.add_argument("--check-username", metavar="NAME", help="Check whether a username is available")
    parser.add_argument("--check-phone", metavar="PHONE", help="Check whether a phone number is already registered")
    parser.add_argument("--verify-phone", metavar="PHONE", help="Verify a phone number with an OTP code (interactive)")
    parser.add_argument("--dial-code", help="Country dial code prepended to the phone number (e.g. +57)")
    parser.add_argument("--user-id", help="User id the verification belongs to")
    parser.add_argument("--method", choices=list(OTP_METHODS), default=None, help="OTP delivery channel")
    parser.add_argument("--show-quota", action="store_true", help="Show remaining daily block/report quota")
    parser.add_argument("--record-action", metavar="KIND", help="Record one performed action (block, report)")
    parser.add_argument("--reset-quota", metavar="KIND", help="Reset today's counter for an action kind")
    parser.add_argument("--config", help="JSON/YAML settings file (default: $GATEKEEP_CONFIG)")
    parser.add_argument("--api-url", help="Backend base URL (default: $GATEKEEP_API_URL)")
    parser.add_argument("--state-file", help="Where quota counters are stored (default: $GATEKEEP_STATE_FILE)")
    parser.add_argument("--timeout", type=int, default=None, help="Request timeout in seconds")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--no-banner", action="store_true", help="Don't show application banner")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} CLI v{APP_VERSION}")

    return parser


if __name__ == "__main__":
    sys.exit(main())

import argparse
from importlib.metadata import version

from rich.console import Console

from .core import DEFAULT_CONCURRENCY
from .exceptions import RunforgeError
from .logger import logger, set_verbosity
from .modes import deploy


def main() -> None:
    parser = argparse.ArgumentParser(
        description="runforge: declarative Cloud Run service reconciler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show what would change for a service
  runforge --file service.json --plan

  # Apply the desired state
  runforge --file service.json

  # Apply with a 5 minute deadline and JSON output
  runforge --file service.json --deadline 300 --json

  # Diff invoker bindings against a known previous member list
  runforge --file service.json --plan --previous-members user:a@x.com,user:b@x.com
""",
    )
    try:
        ver = version("runforge")
    except Exception:
        ver = "unknown"
    parser.add_argument("--version", action="version", version=f"runforge v{ver}")

    parser.add_argument(
        "--file", "-f", required=True, help="Desired-state JSON document"
    )
    parser.add_argument(
        "--plan",
        action="store_true",
        help="Print the changes without applying them",
    )
    parser.add_argument("--json", action="store_true", help="Output results as JSON")
    parser.add_argument(
        "--deadline",
        type=float,
        help="Seconds to wait for the deploy before cancelling pending bindings",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=DEFAULT_CONCURRENCY,
        help=f"Bindings applied in parallel (default: {DEFAULT_CONCURRENCY})",
    )
    parser.add_argument(
        "--previous-members",
        help="Comma-separated invoker list from the last apply "
        "(default: read from the service IAM policy)",
    )
    parser.add_argument(
        "--keyed-by",
        choices=["index", "member"],
        default="index",
        help="Identity of invoker bindings (default: index)",
    )
    parser.add_argument(
        "--verbose", "-v", action="count", default=0, help="Increase log verbosity"
    )

    args = parser.parse_args()

    if args.verbose:
        set_verbosity(args.verbose)

    # Use stderr for logs/progress if stdout is piped for JSON
    log_console = Console(stderr=True, quiet=args.json)
    out_console = Console(quiet=args.json)

    try:
        if args.plan:
            deploy.run_plan(args, log_console, out_console)
        elif not deploy.run_apply(args, log_console, out_console):
            exit(1)
    except RunforgeError as e:
        logger.error(f"Deploy Failed: {e}")
        exit(1)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        from rich.console import Console

        console = Console(stderr=True)
        console.print("\n[bold red]Operation cancelled by user.[/bold red]")
        exit(130)

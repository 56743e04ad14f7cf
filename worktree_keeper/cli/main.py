"""Command-line interface for worktree-keeper"""

import sys
from typing import List, Optional

from rich.console import Console

from worktree_keeper.cli.args import parse_args
from worktree_keeper.config import Config
from worktree_keeper.core import WorktreeKeeper
from worktree_keeper.logging_config import get_logger, setup_logging
from worktree_keeper.services.display_service import DisplayService

console = Console()
logger = get_logger(__name__)


def run_command(keeper: WorktreeKeeper, args, display: DisplayService) -> int:
    """Dispatch one subcommand. Returns the exit status."""
    if args.command == "create":
        result = keeper.create_many(
            args.repos, args.change_type, args.name, args.base_branches, host_pointer=args.host_pointer
        )
        display.display_batch(result)
        return 1 if result.errors else 0

    if args.command == "list":
        display.display_worktrees(keeper.list())
        return 0

    if args.command == "delete":
        path = keeper.delete(args.repo, args.change_type, args.name, args.path)
        display.display_deleted(path)
        return 0

    if args.command == "branches":
        descriptor = keeper.resolver.resolve(args.repo)
        display.display_branches(descriptor.canonical_name, keeper.list_branches(args.repo))
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    parsed_args = None
    display = DisplayService(console)
    try:
        parsed_args = parse_args(argv)
        display.json_output = parsed_args.json

        # Setup logging before creating WorktreeKeeper
        setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)

        config = Config.from_env(verbose=parsed_args.verbose, debug=parsed_args.debug)

        if parsed_args.debug:
            console.print("[yellow]Debug mode enabled[/yellow]")
            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                console.print(f"  {key}: {value}")

        with WorktreeKeeper(config) as keeper:
            return run_command(keeper, parsed_args, display)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except Exception as e:
        display.display_error(e)
        if parsed_args is not None and parsed_args.debug:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())

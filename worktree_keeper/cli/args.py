"""Command-line argument parsing for worktree-keeper."""

import argparse
from typing import Dict, List, Optional

from worktree_keeper.__version__ import __version__
from worktree_keeper.models.worktree import ChangeType


def parse_base_branches(values: Optional[List[str]]) -> Dict[str, str]:
    """Turn ``--base REPO=BRANCH`` values into a mapping."""
    base_branches = {}
    for value in values or []:
        repo, sep, branch = value.partition("=")
        if not sep or not repo or not branch:
            raise argparse.ArgumentTypeError(f"Invalid --base '{value}', expected REPO=BRANCH")
        base_branches[repo] = branch
    return base_branches


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="worktree-keeper",
        description="Create, list and delete git worktrees across configured repositories",
        epilog="Setup: repositories are cloned with GITHUB_TOKEN (or a token file next to REPO_ROOT). "
        "Roots and repositories are configured through environment variables.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument("--version", action="version", version=f"worktree-keeper {__version__}")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )
    parser.add_argument("--json", action="store_true", help="Print results as JSON")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    create = subparsers.add_parser("create", help="Create (or repair) a worktree in one or more repositories")
    create.add_argument(
        "--repo", action="append", required=True, dest="repos", metavar="REPO",
        help="Repository key or name (repeat for several repositories)",
    )
    create.add_argument("--type", required=True, choices=ChangeType.values(), dest="change_type")
    create.add_argument("--name", required=True, help="Worktree name (letters, digits, '_' and '-')")
    create.add_argument(
        "--base", action="append", metavar="REPO=BRANCH",
        help="Base branch for a new branch in REPO (default: dev, then main, then master)",
    )
    create.add_argument(
        "--host-pointer", action="store_true",
        help="Leave host paths in the new worktree's .git file (for tools running on the host)",
    )

    subparsers.add_parser("list", help="List worktrees that follow the naming convention")

    delete = subparsers.add_parser("delete", help="Delete a worktree (the branch is kept)")
    delete.add_argument("--repo", required=True, metavar="REPO", help="Repository key or name")
    delete.add_argument("--type", required=True, choices=ChangeType.values(), dest="change_type")
    delete.add_argument("--name", required=True)
    delete.add_argument("--path", help="Worktree path, when it differs from the conventional one")

    branches = subparsers.add_parser("branches", help="List branches of the upstream repository")
    branches.add_argument("repo", metavar="REPO", help="Repository key or name")

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "create":
        try:
            args.base_branches = parse_base_branches(args.base)
        except argparse.ArgumentTypeError as e:
            parser.error(str(e))
    return args

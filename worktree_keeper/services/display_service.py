"""Console output for worktree-keeper"""
import json
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from worktree_keeper.exceptions import GitOperationError, WorktreeKeeperError
from worktree_keeper.models.worktree import BatchResult, WorktreeRecord

STATUS_STYLES = {
    "ok": "green",
    "unregistered": "yellow",
    "mismatch": "red",
}


def record_status(record: WorktreeRecord) -> str:
    if record.actual_branch != record.identity.branch_name:
        return "mismatch"
    if not record.registered_in_git:
        return "unregistered"
    return "ok"


class DisplayService:
    def __init__(self, console: Optional[Console] = None, json_output: bool = False):
        self.console = console or Console()
        self.json_output = json_output

    def _print_json(self, data) -> None:
        self.console.print_json(json.dumps(data))

    def display_worktrees(self, records: List[WorktreeRecord]) -> None:
        """Display a table of worktrees."""
        if self.json_output:
            self._print_json({"worktrees": [record.to_dict() for record in records]})
            return

        if not records:
            self.console.print("No worktrees found")
            return

        table = Table()
        for label in ("Repository", "Type", "Name", "Branch", "Path", "Status"):
            table.add_column(label)

        for record in records:
            status = record_status(record)
            table.add_row(
                f"{record.identity.repository.canonical_name} ({record.identity.repository.key})",
                record.identity.change_type.value,
                record.identity.name,
                record.actual_branch,
                record.path,
                status,
                style=STATUS_STYLES.get(status),
            )

        self.console.print(table)

    def display_batch(self, result: BatchResult) -> None:
        """Display the outcome of a create across repositories."""
        if self.json_output:
            self._print_json(result.to_dict())
            return

        for record in result.worktrees:
            self.console.print(f"[green]✓[/green] {record.branch_name} at {record.path}")
        for identifier, error in result.errors.items():
            self.console.print(f"[red]✗ {identifier}: {escape(str(error))}[/red]")
            self._print_stderr(error)

    def display_deleted(self, path: str) -> None:
        if self.json_output:
            self._print_json({"deleted": path})
        else:
            self.console.print(f"[green]✓[/green] Deleted worktree at {path}")

    def display_branches(self, repository: str, branches: List[str]) -> None:
        if self.json_output:
            self._print_json({"repository": repository, "branches": branches})
            return

        table = Table(title=repository)
        table.add_column("Branch")
        for branch in branches:
            table.add_row(branch)
        self.console.print(table)

    def display_error(self, error: Exception) -> None:
        if self.json_output:
            data = {"error": str(error)}
            if isinstance(error, GitOperationError):
                data["stderr"] = error.stderr
            self._print_json(data)
            return

        self.console.print(f"[red]Error: {escape(str(error))}[/red]")
        if isinstance(error, WorktreeKeeperError):
            self._print_stderr(error)

    def _print_stderr(self, error: WorktreeKeeperError) -> None:
        # The message already ends with stderr; show the full command for context
        if isinstance(error, GitOperationError) and error.command:
            self.console.print(f"[dim]  command: {escape(' '.join(error.command))}[/dim]")

"""Console reporter using Rich library for formatted CLI output.

Shows, per provider, the presigned method and URL (or the error), and a
summary table at the end.
"""

from rich import box
from rich.console import Console
from rich.rule import Rule
from rich.table import Table

from presigner.models import PresignResult, ResultStatus
from presigner.reporters.base import Reporter


class ConsoleReporter(Reporter):
    """Rich-based console reporter for CLI output.

    Args:
        quiet: If True, print only the summary table
    """

    def __init__(self, quiet: bool = False):
        # Use legacy_windows=True for ASCII-safe output on Windows consoles
        self.console = Console(legacy_windows=True)
        self.quiet = quiet

    def on_presign_start(self, provider_name: str, object_key: str) -> None:
        if self.quiet:
            return

        self.console.print()
        self.console.print(
            Rule(
                f"[bold cyan]Presigning: {provider_name} / {object_key}[/bold cyan]",
                style="cyan",
                characters="-",
            )
        )

    def on_presign_complete(self, result: PresignResult) -> None:
        """Displays the presigned request, or the error."""
        if self.quiet:
            return

        if result.status == ResultStatus.OK and result.request is not None:
            request = result.request
            self.console.print(f"  [green][OK][/green] {request.method}")
            # soft_wrap keeps the URL on one line so it can be copied
            self.console.print(request.uri, soft_wrap=True)
            for name, value in request.headers.items():
                self.console.print(f"     [dim]{name}: {value}[/dim]")
            if request.expires_at is not None:
                self.console.print(
                    f"     [dim]expires {request.expires_at.isoformat()}[/dim]"
                )
        else:
            self.console.print(f"  [red][ERROR][/red] {result.provider_name}")
            if result.error_message:
                self.console.print(f"     [dim red]{result.error_message}[/dim red]")

    def on_run_complete(self, results: dict[str, PresignResult]) -> None:
        """Displays a summary table of all providers."""
        if not results:
            self.console.print("[yellow]No results to display.[/yellow]")
            return

        self.console.print()
        table = Table(
            title="",
            show_header=True,
            header_style="bold magenta",
            border_style="dim",
            box=box.ASCII,
        )
        table.add_column("Provider", style="cyan", no_wrap=True)
        table.add_column("Key", no_wrap=True)
        table.add_column("Expires", no_wrap=True)
        table.add_column("Status", justify="center", no_wrap=True)

        for result in results.values():
            expires = "-"
            if result.request is not None and result.request.expires_at is not None:
                expires = result.request.expires_at.isoformat()

            if result.status == ResultStatus.OK:
                status_symbol = "[green]OK[/green]"
            else:
                status_symbol = "[red]ERROR[/red]"

            table.add_row(result.provider_name, result.object_key, expires, status_symbol)

        self.console.print(table)
        self.console.print()

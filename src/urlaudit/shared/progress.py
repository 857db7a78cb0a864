"""Rich progress display for a single audit run."""

from __future__ import annotations

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

console = Console()


class AuditProgress:
    """One spinner for the whole audit; each stage message replaces the last."""

    def __init__(self, label: str, *, console: Console = console) -> None:
        self.label = label
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id: int | None = None
        self.stages: list[str] = []

    def __enter__(self) -> "AuditProgress":
        self._progress.__enter__()
        self._task_id = self._progress.add_task(f"[cyan]{self.label}[/]", total=None)
        return self

    def __exit__(self, *args: object) -> None:
        self._progress.__exit__(*args)

    def stage(self, message: str) -> None:
        """Record a stage and show it next to the spinner."""
        self.stages.append(message)
        if self._task_id is not None:
            self._progress.update(self._task_id, description=f"[cyan]{self.label}[/]: {message}")

    def finish(self, message: str = "done") -> None:
        if self._task_id is not None:
            self._progress.update(
                self._task_id,
                description=f"[green]✓ {self.label}[/] {message}",
                completed=True,
            )

    def fail(self, error: str) -> None:
        if self._task_id is not None:
            self._progress.update(
                self._task_id,
                description=f"[red]✗ {self.label}: {error}[/]",
                completed=True,
            )

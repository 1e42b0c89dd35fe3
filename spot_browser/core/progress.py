"""
Progress bar for container loads using the Rich library.

LoadProgressBar follows the controller's Progress events: a fraction in
[0, 1] advances the bar, None (total unknown) switches it to pulse mode.

Usage:
    from spot_browser.core.progress import LoadProgressBar

    with LoadProgressBar("saved tracks") as bar:
        bar.update(0.5, items=10)
"""

from typing import Optional

from rich import get_console
from rich.progress import BarColumn, Progress, TaskID, TextColumn
from rich.theme import Theme


PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(165,66,129)",
    "bar.finished": "rgb(114,156,31)",
    "bar.pulse": "rgb(165,66,129)",
    "progress.percentage": "white",
})

# Bar resolution; fractions are mapped onto this many steps
STEPS = 1000


class LoadProgressBar:
    """
    Rich progress bar showing one container load.

    Example:
        Loading         saved tracks    42 rows   ━━━━━━━━━━━━━━━━━  63%
    """

    def __init__(self, description: str, transient: bool = False):
        self.description = description
        self.items = 0
        self.retry_in: float | None = None

        self.console = get_console()
        self.console.push_theme(PROGRESS_THEME)

        self.progress = Progress(
            TextColumn("[white]Loading", justify="left"),
            TextColumn("{task.description}", style="white"),
            TextColumn("{task.fields[status]}", style="white"),
            BarColumn(bar_width=40, finished_style="green"),
            "[progress.percentage]{task.percentage:>3.0f}%",
            console=self.console,
            transient=transient,
            refresh_per_second=10,
        )
        self.task_id: Optional[TaskID] = None
        self._started = False

    def __enter__(self) -> "LoadProgressBar":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def start(self) -> None:
        if not self._started:
            self.progress.start()
            # total=None renders the pulse animation until the first fraction
            self.task_id = self.progress.add_task(
                description=self.description,
                total=None,
                status=self._get_status_text(),
            )
            self._started = True

    def stop(self) -> None:
        if self._started:
            self.progress.stop()
            self._started = False
            self.console.pop_theme()

    def log(self, message: str) -> None:
        """Print a message above the progress bar."""
        self.progress.console.print(message, highlight=False)

    def update(self, fraction: float | None, items: int | None = None) -> None:
        """
        Args:
            fraction: Completed fraction, or None when the total is unknown.
            items: Rows loaded so far.
        """
        if items is not None:
            self.items = items
        self.retry_in = None
        if self.task_id is None:
            return
        if fraction is None:
            self.progress.update(self.task_id, total=None, status=self._get_status_text())
        else:
            self.progress.update(
                self.task_id,
                total=STEPS,
                completed=round(fraction * STEPS),
                status=self._get_status_text(),
            )

    def waiting(self, seconds: float) -> None:
        """Show that the next request is delayed (rate limit, login)."""
        self.retry_in = seconds
        if self.task_id is not None:
            self.progress.update(self.task_id, status=self._get_status_text())

    def _get_status_text(self) -> str:
        text = f"{self.items} rows"
        if self.retry_in is not None:
            text += f"  [yellow]retry in {self.retry_in:g}s[/yellow]"
        return text

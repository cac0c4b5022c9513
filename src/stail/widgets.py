"""Custom widgets for the stail dashboard."""

from typing import Optional, Sequence

from rich.text import Text
from textual.reactive import reactive
from textual.widgets import Static


class StatusBar(Static):
    """Status bar widget displaying messages."""

    message = reactive("Ready")

    def watch_message(self, value: str) -> None:
        self.update(Text.assemble((value, "bold")))


class OutputViewer(Static):
    """Shows a window of the tailed output around the orchestrator's scroll index."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._lines: Sequence[str] = ()
        self._index: Optional[int] = None

    def show(self, lines: Sequence[str], index: Optional[int], placeholder: str = "No output") -> None:
        """Render the lines ending at ``index`` that fit in the widget."""
        self._lines = lines
        self._index = index
        if not lines or index is None:
            self.update(Text(placeholder, style="dim"))
            return
        height = max(1, self.size.height)
        start = max(0, index - height + 1)
        self.update(Text("\n".join(lines[start : index + 1])))

    def on_resize(self) -> None:
        self.show(self._lines, self._index)

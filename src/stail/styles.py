"""CSS styles for the stail dashboard."""

APP_CSS = """
Screen { layout: vertical; overflow: hidden; }
.bar { height: 1; }
StatusBar { padding-left: 1; background: $boost; }

/* Jobs on the left, details and output on the right */
.split-container {
    height: 1fr;
    width: 100%;
    overflow: hidden;
}

.list-pane {
    width: 55%;
    min-width: 60;
    height: 100%;
    border: round $surface-lighten-1;
}

.detail-pane {
    width: 45%;
    height: 100%;
}

.detail-section {
    height: 9;
    padding: 0 1;
}

.section-header {
    height: 1;
    background: $primary-darken-2;
    padding-left: 1;
}

.output-viewer {
    height: 1fr;
    border: round $surface-lighten-1;
    padding: 0 1;
}

#jobs_table {
    height: 1fr;
    scrollbar-size-vertical: 1;
}

/* Border of whichever pane receives navigation keys */
.list-pane.focused, .output-viewer.focused {
    border: round $accent;
}
"""

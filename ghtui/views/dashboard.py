"""Main dashboard screen: tab bar, two content panels and the status line."""

from __future__ import annotations

from typing import TYPE_CHECKING

from textual import events
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.screen import Screen

from ghtui.snapshot import Snapshot
from ghtui.state import Focus, Tab, View
from ghtui.views.widgets import (
    Panel,
    StatusBar,
    TabBar,
    render_checks,
    render_diff,
    render_help,
    render_jobs,
    render_log,
    render_pr_detail,
    render_pr_list,
    render_runs,
    render_status_bar,
    render_tab_bar,
)

if TYPE_CHECKING:
    from ghtui.app import GhTuiApp

# Panel borders plus the tab bar and status line
PANEL_CHROME = 4


class DashboardScreen(Screen, inherit_bindings=False):
    """Single screen; which panels are visible follows the UI state."""

    DEFAULT_CSS = """
    DashboardScreen {
        layout: vertical;
        background: $surface;
    }

    #body {
        height: 1fr;
    }

    #left {
        width: 2fr;
    }

    #right {
        width: 3fr;
    }

    #side {
        width: 2fr;
    }

    .hidden {
        display: none;
    }
    """

    def compose(self) -> ComposeResult:
        yield TabBar(id="tabs")
        with Horizontal(id="body"):
            yield Panel(id="left")
            yield Panel(id="right")
            yield Panel(id="side")
        yield StatusBar(id="status")

    @property
    def ghtui(self) -> GhTuiApp:
        return self.app  # type: ignore[return-value]

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self.ghtui.handle_terminal_key(event.key, event.character)

    def on_resize(self, event: events.Resize) -> None:
        self.ghtui.handle_terminal_resize(event.size.width, event.size.height)

    def draw(self, snapshot: Snapshot) -> None:
        """Replace every panel's content from one snapshot."""
        if not self.is_mounted:
            return
        left = self.query_one("#left", Panel)
        right = self.query_one("#right", Panel)
        side = self.query_one("#side", Panel)
        self.query_one("#tabs", TabBar).update(render_tab_bar(snapshot))
        self.query_one("#status", StatusBar).update(render_status_bar(snapshot))

        width, height = snapshot.viewport
        inner = max(1, height - PANEL_CHROME)
        ui = snapshot.ui

        if ui.show_help:
            self._layout(left, right=None, side=None)
            left.show(render_help(), focused=True)
            return

        if ui.tab is Tab.PRS:
            if ui.view is View.DIFF:
                self._layout(left, right=None, side=None)
                left.show(render_diff(snapshot, inner), focused=True)
            else:
                self._layout(left, right, side)
                left.show(render_pr_list(snapshot, inner), ui.focus is Focus.LIST)
                right.show(render_pr_detail(snapshot, inner), ui.focus is Focus.DETAIL)
                side.show(render_checks(snapshot, inner), ui.focus is Focus.CHECKS)
        elif ui.tab is Tab.ACTIONS:
            self._layout(left, right=None, side=None)
            if ui.view is View.JOBS:
                left.show(render_jobs(snapshot, inner), focused=True)
            else:
                left.show(render_runs(snapshot, inner), focused=True)
        else:
            self._layout(left, right=None, side=None)
            left.show(render_log(snapshot, inner, max(1, width - PANEL_CHROME)), focused=True)

    def _layout(self, left: Panel, right: Panel | None, side: Panel | None) -> None:
        left.remove_class("hidden")
        for panel_id, panel in (("#right", right), ("#side", side)):
            target = panel or self.query_one(panel_id, Panel)
            target.set_class(panel is None, "hidden")

"""
GitHub TUI Application.

Textual only supplies the terminal: key presses and resizes are forwarded
into the EventSource, and one worker runs the controller loop, pulling an
event, draining dispatcher results and redrawing from a snapshot.
"""

from __future__ import annotations

import logging

from textual.app import App
from textual.binding import Binding

from ghtui.config import AppConfig
from ghtui.controller import Controller
from ghtui.dispatch import Dispatcher
from ghtui.events import EventSource, Key, key_from_textual
from ghtui.providers import DataProvider
from ghtui.views.dashboard import DashboardScreen

logger = logging.getLogger(__name__)


class GhTuiApp(App, inherit_bindings=False):
    """Main GitHub TUI application."""

    TITLE = "ghtui"
    SUB_TITLE = "Pull Requests & Actions"

    ENABLE_COMMAND_PALETTE = False

    CSS = """
    Screen {
        background: $surface;
    }
    """

    # Ctrl+C must reach the controller even while an input mode is active
    BINDINGS = [
        Binding("ctrl+c", "interrupt", "Quit", show=False, priority=True),
    ]

    def __init__(self, config: AppConfig, provider: DataProvider, **kwargs) -> None:
        super().__init__(**kwargs)
        self.config = config
        self._provider = provider
        self._events = EventSource(config.tick_interval)
        self._dispatcher = Dispatcher(config.task_timeout, on_result=self._events.wake)
        self.controller = Controller(
            config, provider, self._dispatcher, clipboard=self.copy_to_clipboard
        )
        self._screen = DashboardScreen()

    def on_mount(self) -> None:
        """Called when app is mounted."""
        self.push_screen(self._screen)
        self._events.start()
        self._events.feed_resize(self.size.width, self.size.height)
        self.controller.start()
        self.run_worker(self._main_loop(), name="controller", exclusive=True)

    async def _main_loop(self) -> None:
        controller = self.controller
        async for event in self._events:
            controller.handle_event(event)
            controller.process_messages()
            if controller.should_quit:
                break
            self._screen.draw(controller.snapshot())
        logger.info("Controller loop finished")
        self.exit()

    def handle_terminal_key(self, key: str, character: str | None) -> None:
        self._events.feed_key(key_from_textual(key, character))

    def handle_terminal_resize(self, width: int, height: int) -> None:
        self._events.feed_resize(width, height)

    def action_interrupt(self) -> None:
        self._events.feed_key(Key.ctrl("c"))

    async def on_unmount(self) -> None:
        self._events.close()
        await self._dispatcher.close()
        close = getattr(self._provider, "aclose", None)
        if close is not None:
            await close()


def run(config: AppConfig, provider: DataProvider) -> None:
    """Run the TUI application."""
    app = GhTuiApp(config, provider)
    app.run()

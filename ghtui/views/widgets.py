"""Renderers and widgets for the dashboard.

The render_* functions are pure: they turn a Snapshot into Rich markup and
never touch controller state, so they can be tested without a terminal.
"""

from __future__ import annotations

import re

from rich.markup import escape
from textual.widgets import Static

from ghtui.dispatch import ResourceKind
from ghtui.snapshot import Snapshot
from ghtui.state import TAB_ORDER, DiffMode, Focus, Tab, UiState, View
from ghtui.status import Notification, Prompt

LOADING = "[dim]Loading...[/dim]"

RUN_STYLES = {
    "success": "green",
    "failure": "red",
    "cancelled": "yellow",
    "skipped": "dim",
}

REVIEW_STYLES = {
    "APPROVED": "green",
    "CHANGES_REQUESTED": "red",
    "COMMENTED": "cyan",
}


def window(length: int, cursor: int, height: int) -> tuple[int, int]:
    """Slice bounds [start, end) of a list view that keep cursor visible."""
    height = max(1, height)
    if length <= height:
        return 0, length
    start = min(max(0, cursor - height // 2), length - height)
    return start, start + height


def run_style(status: str, conclusion: str | None) -> str:
    if conclusion in RUN_STYLES:
        return RUN_STYLES[conclusion]
    return "yellow" if status in ("in_progress", "queued") else "white"


def diff_line_markup(line: str) -> str:
    text = escape(line)
    if line.startswith(("+++", "---")):
        return f"[bold]{text}[/bold]"
    if line.startswith("@@"):
        return f"[cyan]{text}[/cyan]"
    if line.startswith("+"):
        return f"[green]{text}[/green]"
    if line.startswith("-"):
        return f"[red]{text}[/red]"
    if line.startswith("diff --git"):
        return f"[bold yellow]{text}[/bold yellow]"
    return text


def highlight(line: str, term: str | None) -> str:
    """Escape line and mark case-insensitive occurrences of term."""
    if not term:
        return escape(line)
    parts = re.split(f"({re.escape(term)})", line, flags=re.IGNORECASE)
    return "".join(
        f"[black on yellow]{escape(p)}[/black on yellow]" if i % 2 else escape(p)
        for i, p in enumerate(parts)
    )


def _cursor_line(text: str, selected: bool, focused: bool = True) -> str:
    if not selected:
        return f"  {text}"
    style = "reverse" if focused else "bold"
    return f"[{style}]> {text}[/{style}]"


# =============================================================================
# Chrome
# =============================================================================


def render_tab_bar(snapshot: Snapshot) -> str:
    tabs = []
    for i, tab in enumerate(TAB_ORDER, start=1):
        label = f" {i}:{tab.label} "
        if tab is snapshot.ui.tab:
            tabs.append(f"[bold reverse]{label}[/bold reverse]")
        else:
            tabs.append(f"[dim]{label}[/dim]")
    busy = "  [yellow]◷[/yellow]" if snapshot.busy else ""
    return f"[bold]{escape(snapshot.repo)}[/bold]  " + " ".join(tabs) + busy


def footer_hints(ui: UiState) -> str:
    if ui.input is not None:
        return "Enter: submit | Esc: cancel"
    if ui.show_help:
        return "?/Esc: close help | q: quit"
    if ui.tab is Tab.PRS:
        if ui.view is View.DIFF:
            return "j/k: scroll | p: by commit | [/]: prev/next commit | Esc: back"
        if ui.focus is Focus.CHECKS:
            return "j/k: move | Enter: logs | L: jobs | R: rerun | h: back | ?: help"
        if ui.view is View.DETAIL:
            return "d: diff | v: approve | x: changes | c: comment | m: merge | Esc: list | ?: help"
        return "j/k: move | Enter: open | f: filter | n: new PR | r: refresh | ?: help"
    if ui.tab is Tab.ACTIONS:
        if ui.view is View.JOBS:
            return "j/k: move | Enter/L: logs | R: rerun | Esc: runs | ?: help"
        return "j/k: move | Enter: jobs | R: rerun | r: refresh | ?: help"
    return "j/k: scroll | h/l: pan | g/G: top/bottom | /: search | n/N: match | Esc: jobs"


def render_status_bar(snapshot: Snapshot) -> str:
    ui = snapshot.ui
    message = snapshot.status
    if isinstance(message, Prompt):
        buffer = ui.input.buffer if ui.input else ""
        return f"[bold cyan]{escape(message.text)}[/bold cyan] {escape(buffer)}█"
    if isinstance(message, Notification):
        style = "bold red" if message.is_error else "green"
        text = f"[{style}]{escape(message.text)}[/{style}]"
        if ui.input is not None:
            # Keystrokes still edit the buffer while the notice is up
            text = f"{text} [dim]|[/dim] {escape(ui.input.buffer)}█"
        return text
    if ui.input is not None:
        return f"[bold cyan]{escape(ui.input.mode.prompt)}[/bold cyan] {escape(ui.input.buffer)}█"
    return f"[dim]{escape(footer_hints(ui))}[/dim]"


HELP_TEXT = """\
[bold]Global[/bold]
  q / Ctrl+C   quit            ?            toggle help
  1 2 3        switch tab      Tab/S-Tab    next/previous (focus in PR view)
  r            refresh         n            new pull request

[bold]Pull requests[/bold]
  j/k          move            h/l, o       change focus
  Enter        open PR / check logs          Esc  back to list
  d            diff            p, [ ]       commit-by-commit diff
  v            approve         x            request changes
  c            comment         e            edit title
  b            add labels      a            add reviewers
  m            merge           C            checkout
  w            open in browser f            cycle filter
  R            rerun check     L            check jobs
  y            copy branch     Y            copy checkout command
  u            copy PR URL

[bold]Actions[/bold]
  j/k          move            Enter        jobs / logs
  R            rerun           Esc          back to runs

[bold]Logs[/bold]
  j/k, PgUp/PgDn  scroll       h/l          pan
  g/G          top/bottom      0            reset pan
  /            search          n/N          next/previous match
  Esc          back to jobs"""


def render_help() -> str:
    return HELP_TEXT


# =============================================================================
# Pull requests
# =============================================================================


def render_pr_list(snapshot: Snapshot, height: int) -> str:
    title = f"[bold]Pull Requests[/bold] [dim]({snapshot.pr_filter.label})[/dim]"
    if not snapshot.prs:
        if snapshot.is_loading(ResourceKind.PR_LIST):
            return f"{title}\n{LOADING}"
        return f"{title}\n[dim]No open pull requests[/dim]"

    focused = snapshot.ui.focus is Focus.LIST
    start, end = window(len(snapshot.prs), snapshot.pr_cursor, height - 1)
    lines = [title]
    for i in range(start, end):
        pr = snapshot.prs[i]
        text = f"{pr.status_icon} #{pr.number} {escape(pr.title)} [dim]@{escape(pr.user.login)}[/dim]"
        lines.append(_cursor_line(text, i == snapshot.pr_cursor, focused))
    return "\n".join(lines)


def pr_detail_lines(snapshot: Snapshot) -> list[str]:
    pr = snapshot.pr
    if pr is None:
        if snapshot.is_loading(ResourceKind.PR_DETAIL):
            return [LOADING]
        return ["[dim]Select a pull request with Enter[/dim]"]

    state = "merged" if pr.merged else ("draft" if pr.draft else pr.state)
    lines = [
        f"[bold]#{pr.number} {escape(pr.title)}[/bold]",
        f"{pr.status_icon} {state}  [dim]{escape(pr.head.ref)} → {escape(pr.base.ref)}[/dim]",
        f"Author: @{escape(pr.user.login)}",
    ]
    if pr.labels:
        lines.append("Labels: " + ", ".join(escape(l.name) for l in pr.labels))
    if pr.requested_reviewers:
        lines.append(
            "Reviewers requested: " + ", ".join(f"@{escape(u.login)}" for u in pr.requested_reviewers)
        )
    if pr.mergeable is False:
        lines.append("[red]Has merge conflicts[/red]")

    if snapshot.reviews:
        lines.append("")
        lines.append("[bold]Reviews[/bold]")
        for review in snapshot.reviews:
            style = REVIEW_STYLES.get(review.state, "white")
            lines.append(
                f"  [{style}]{review.status_icon} @{escape(review.user.login)} {review.state.lower()}[/{style}]"
            )

    if snapshot.commits:
        lines.append("")
        lines.append(f"[bold]Commits ({len(snapshot.commits)})[/bold]")
        for commit in snapshot.commits:
            lines.append(f"  [yellow]{commit.short_sha}[/yellow] {escape(commit.first_line)}")

    lines.append("")
    body = (pr.body or "").strip()
    if body:
        lines.extend(escape(l) for l in body.splitlines())
    else:
        lines.append("[dim]No description[/dim]")
    return lines


def render_pr_detail(snapshot: Snapshot, height: int) -> str:
    lines = pr_detail_lines(snapshot)
    start = min(snapshot.detail_scroll, max(0, len(lines) - 1))
    return "\n".join(lines[start : start + max(1, height)])


def render_checks(snapshot: Snapshot, height: int) -> str:
    title = "[bold]Checks[/bold]"
    if not snapshot.checks:
        if snapshot.is_loading(ResourceKind.PR_CHECKS):
            return f"{title}\n{LOADING}"
        return f"{title}\n[dim]No checks[/dim]"

    focused = snapshot.ui.focus is Focus.CHECKS
    start, end = window(len(snapshot.checks), snapshot.check_cursor, height - 1)
    lines = [title]
    for i in range(start, end):
        run = snapshot.checks[i]
        style = run_style(run.status, run.conclusion)
        text = f"[{style}]{run.status_icon}[/{style}] {escape(run.name)}"
        lines.append(_cursor_line(text, i == snapshot.check_cursor, focused))
    return "\n".join(lines)


def render_diff(snapshot: Snapshot, height: int) -> str:
    if snapshot.diff_mode is DiffMode.BY_COMMIT:
        commit = snapshot.selected_commit
        if commit is None:
            loading = snapshot.is_loading(ResourceKind.PR_COMMITS)
            return LOADING if loading else "[dim]No commits[/dim]"
        header = (
            f"[bold]Commit {snapshot.commit_cursor + 1}/{len(snapshot.commits)}[/bold] "
            f"[yellow]{commit.short_sha}[/yellow] {escape(commit.first_line)}"
        )
        text = snapshot.commit_diff
        loading = snapshot.is_loading(ResourceKind.COMMIT_DIFF, commit.sha)
    else:
        header = "[bold]Full diff[/bold]"
        text = snapshot.diff
        loading = snapshot.pr is not None and snapshot.is_loading(
            ResourceKind.PR_DIFF, snapshot.pr.number
        )

    if text is None:
        return f"{header}\n{LOADING if loading else '[dim]No diff[/dim]'}"
    lines = text.splitlines()
    start = min(snapshot.diff_scroll, max(0, len(lines) - 1))
    body = [diff_line_markup(l) for l in lines[start : start + max(1, height - 1)]]
    return "\n".join([header, *body])


# =============================================================================
# Actions
# =============================================================================


def render_runs(snapshot: Snapshot, height: int) -> str:
    title = "[bold]Workflow Runs[/bold]"
    if not snapshot.runs:
        if snapshot.is_loading(ResourceKind.RUN_LIST):
            return f"{title}\n{LOADING}"
        return f"{title}\n[dim]No workflow runs[/dim]"

    start, end = window(len(snapshot.runs), snapshot.run_cursor, height - 1)
    lines = [title]
    for i in range(start, end):
        run = snapshot.runs[i]
        style = run_style(run.status, run.conclusion)
        text = (
            f"[{style}]{run.status_icon}[/{style}] {escape(run.name)} #{run.run_number} "
            f"[dim]{escape(run.head_branch)} · {escape(run.event)}[/dim]"
        )
        lines.append(_cursor_line(text, i == snapshot.run_cursor))
    return "\n".join(lines)


def render_jobs(snapshot: Snapshot, height: int) -> str:
    run = snapshot.run
    if run is None:
        if snapshot.is_loading(ResourceKind.RUN_LIST):
            return f"[bold]Jobs[/bold]\n{LOADING}"
        return "[bold]Jobs[/bold]\n[dim]No workflow run selected[/dim]"

    title = f"[bold]Jobs: {escape(run.name)} #{run.run_number}[/bold]"
    if not snapshot.jobs:
        if snapshot.is_loading(ResourceKind.JOBS, run.id):
            return f"{title}\n{LOADING}"
        return f"{title}\n[dim]No jobs[/dim]"

    lines = [title]
    start, end = window(len(snapshot.jobs), snapshot.job_cursor, height - 1)
    for i in range(start, end):
        job = snapshot.jobs[i]
        style = run_style(job.status, job.conclusion)
        text = f"[{style}]{job.status_icon}[/{style}] {escape(job.name)} [dim]{job.duration}[/dim]"
        lines.append(_cursor_line(text, i == snapshot.job_cursor))
        if i == snapshot.job_cursor:
            for step in job.steps:
                step_style = run_style(step.status, step.conclusion)
                lines.append(f"      [{step_style}]{step.status_icon}[/{step_style}] {escape(step.name)}")
    return "\n".join(lines)


# =============================================================================
# Logs
# =============================================================================


def render_log(snapshot: Snapshot, height: int, width: int) -> str:
    title = f"[bold]{escape(snapshot.log_title) or 'Logs'}[/bold]"
    if snapshot.search:
        count = len(snapshot.matches)
        position = f"{snapshot.match_index + 1}/{count}" if count else "0/0"
        title += f"  [dim]/{escape(snapshot.search)} ({position})[/dim]"

    if snapshot.log is None:
        if snapshot.is_loading(ResourceKind.LOG):
            return f"{title}\n{LOADING}"
        return f"{title}\n[dim]Open a job or check to view its logs[/dim]"

    lines = snapshot.log.splitlines()
    current = snapshot.matches[snapshot.match_index] if snapshot.matches else None
    body = []
    for i in range(snapshot.log_scroll, min(len(lines), snapshot.log_scroll + max(1, height - 1))):
        visible = lines[i][snapshot.log_pan : snapshot.log_pan + max(1, width)]
        text = highlight(visible, snapshot.search)
        if i == current:
            text = f"[bold]{text}[/bold]"
        body.append(text)
    return "\n".join([title, *body])


# =============================================================================
# Widgets
# =============================================================================


class Panel(Static):
    """Bordered panel whose content is replaced wholesale each frame."""

    DEFAULT_CSS = """
    Panel {
        height: 100%;
        border: solid $primary;
        padding: 0 1;
    }

    Panel.focused {
        border: solid $accent;
    }
    """

    def show(self, markup: str, focused: bool = False) -> None:
        self.set_class(focused, "focused")
        self.update(markup)


class StatusBar(Static):
    """One-line status slot at the bottom of the screen."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $panel;
    }
    """


class TabBar(Static):
    DEFAULT_CSS = """
    TabBar {
        height: 1;
        padding: 0 1;
        background: $boost;
    }
    """

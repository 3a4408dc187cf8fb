"""Textual integration for bufferui. Opt-in — requires textual.

Two pieces:
- TextAreaSink: a buffer sink whose destinations are TextArea widgets,
  addressed by DOM id.
- Guarded run_effect()/watch(): skip while the app is paused or not
  running, swallow NoMatches from widget queries, and marshal triggers
  from background threads through app.call_from_thread.

Pause state has a single owner (this module) and is keyed by id(app), so
several apps can coexist in tests.
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches
from textual.widgets import TextArea

from bufferui.diff import apply_patch
from bufferui.effect import run_effect as _run_effect, watch as _watch

_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded effects during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def watch(app, getter, callback, *, immediate=False):
    """watch() that safely bridges to Textual widgets."""
    _main = threading.get_ident()

    def _guarded(new, old):
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, new, old)
        else:
            _safe(new, old)

    def _safe(new, old):
        try:
            callback(new, old)
        except NoMatches:
            pass

    return _watch(getter, _guarded, immediate=immediate)


def run_effect(app, fn):
    """run_effect() that safely bridges to Textual widgets.

    The first run always happens, so dependencies are established. Later
    runs are skipped while the app is paused or not running; a skipped run
    records no dependencies, so the effect stays idle until rerun by hand.
    A run triggered from a background thread is re-run on the app thread.
    """
    _main = threading.get_ident()
    marshaled = False
    started = False

    def _guarded():
        nonlocal started
        if threading.get_ident() != _main and not marshaled:
            app.call_from_thread(_rerun)
            return
        if started and not is_safe(app):
            return
        started = True
        _safe()

    def _rerun():
        nonlocal marshaled
        marshaled = True
        try:
            effect.run()
        finally:
            marshaled = False

    def _safe():
        try:
            fn()
        except NoMatches:
            pass

    effect = _run_effect(_guarded)
    return effect


class TextAreaSink:
    """Buffer sink writing patches into TextArea widgets.

    The destination id is the widget's DOM id. A missing widget raises
    NoMatches to the apply_diff() caller.
    """

    def __init__(self, app) -> None:
        self._app = app
        self._written: dict[str, list[str]] = {}

    def update_content(self, destination_id, patch) -> bool:
        area = self._app.query_one(f"#{destination_id}", TextArea)
        current = self._written.get(destination_id)
        if current is None:
            current = area.text.split("\n") if area.text else []
        lines = apply_patch(current, patch)
        area.load_text("\n".join(lines))
        self._written[destination_id] = lines
        return True

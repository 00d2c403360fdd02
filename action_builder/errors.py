"""Exceptions raised by the recorder."""

from __future__ import annotations


class ActionBuilderError(Exception):
    """Base class for recorder errors."""


class NotInitializedError(ActionBuilderError):
    """Raised when a session is started before the browser is launched."""


class BrowserCrashedError(ActionBuilderError):
    """The browser page or process is gone; the session cannot continue."""


class PersistenceError(ActionBuilderError):
    """A capability document could not be written or read back."""

"""Cross-module infrastructure exceptions."""

from __future__ import annotations

from typing import Any, Optional


class PersistenceFailure(Exception):
    """The store was unreachable or rejected a write.

    The write must be assumed not to have happened.  ``last_known`` holds
    the server copy read before the attempt (when there was one) so callers
    can revert an unsaved edit to it.
    """

    def __init__(self, message: str = "", last_known: Optional[Any] = None) -> None:
        super().__init__(message or "The store rejected the write.")
        self.last_known = last_known

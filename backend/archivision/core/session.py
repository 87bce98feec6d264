"""
Render Session

Caller-owned state for one editing session: produced results, the active
selection and region annotations, and whether an operation is running.
Passed explicitly to the code that needs it instead of living in globals.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Tuple

from archivision.models.render import Annotation, SelectionBox


class OperationInFlight(RuntimeError):
    """A second operation was submitted while one is still running."""


@dataclass(frozen=True)
class SelectionSnapshot:
    """What an operation saw when it started."""
    selection: Optional[SelectionBox]
    annotations: Tuple[Annotation, ...]


@dataclass
class RenderSession:
    results: Tuple[str, ...] = ()
    selection: Optional[SelectionBox] = None
    annotations: Tuple[Annotation, ...] = ()
    busy: bool = field(default=False)

    def add_result(self, data_uri: str) -> None:
        # Rebinding keeps earlier snapshots of ``results`` intact.
        self.results = self.results + (data_uri,)

    def replace_selection(self, selection: Optional[SelectionBox]) -> None:
        self.selection = selection

    def replace_annotations(self, annotations: Tuple[Annotation, ...]) -> None:
        self.annotations = tuple(annotations)

    def clear_selection(self) -> None:
        self.selection = None
        self.annotations = ()

    @asynccontextmanager
    async def begin_operation(self) -> AsyncIterator[SelectionSnapshot]:
        """
        Mark the session busy and hand the operation a snapshot of the
        current selection, which is cleared so a later gesture starts fresh.

        Raises OperationInFlight if another operation is still running.
        """
        if self.busy:
            raise OperationInFlight("An operation is already in progress")
        self.busy = True
        snapshot = SelectionSnapshot(selection=self.selection, annotations=self.annotations)
        self.clear_selection()
        try:
            yield snapshot
        finally:
            self.busy = False

"""
Single-athlete selection for the capture session.
"""

import logging
from typing import Optional

from ..models import Athlete

logger = logging.getLogger(__name__)


class AthleteSelectionContext:
    """
    Holds at most one selected athlete.

    Selecting replaces the previous athlete. Changing the test type tab does
    not touch the selection, so the same athlete can be tested in several
    variants in a row.
    """

    def __init__(self, athlete: Optional[Athlete] = None):
        self._selected = athlete

    @property
    def selected(self) -> Optional[Athlete]:
        return self._selected

    @property
    def has_selection(self) -> bool:
        return self._selected is not None

    @property
    def athlete_id(self) -> Optional[int]:
        return self._selected.id if self._selected else None

    def select(self, athlete: Athlete):
        if self._selected and self._selected.id != athlete.id:
            logger.debug(f"Replacing selected athlete {self._selected.id} with {athlete.id}")
        self._selected = athlete

    def clear(self):
        self._selected = None

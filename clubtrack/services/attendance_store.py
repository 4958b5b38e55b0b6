"""
Attendance draft for one date.

The draft maps every athlete of the loaded roster to a DraftEntry. It is
seeded from persisted records, falls back to absent for athletes with no
record, and is rebuilt from scratch on every seed: entries never carry over
from one roster/date to the next.
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from ..models import Athlete, AttendanceRecord, DraftEntry

logger = logging.getLogger(__name__)


class ReconciliationError(Exception):
    """Base error for the attendance reconciliation cycle."""
    pass


class UnknownAthleteError(ReconciliationError):
    """An edit named an athlete that is not in the loaded roster."""

    def __init__(self, athlete_id: int):
        self.athlete_id = athlete_id
        super().__init__(f"Athlete {athlete_id} is not in the loaded roster")


class AttendanceRecordStore:
    """
    Per-athlete present/absent state with justification.

    Example:
        >>> store = AttendanceRecordStore()
        >>> store.seed([Athlete(1, 'Ana'), Athlete(2, 'Luis')],
        ...            [AttendanceRecord(1, '2024-05-01', True)], '2024-05-01')
        >>> store.get(2)
        DraftEntry(is_present=False, justification='')
    """

    def __init__(self):
        self.date: Optional[str] = None
        self._roster: List[Athlete] = []
        self._draft: Dict[int, DraftEntry] = {}

    # ------------------------------------------------------------------
    # seeding
    # ------------------------------------------------------------------

    def seed(self, roster: Iterable[Athlete], records: Iterable[AttendanceRecord], date: str):
        """
        Replace the whole draft from a fresh roster and its persisted records.

        Records for athletes outside the roster are ignored. When several
        records exist for one athlete the last one wins.
        """
        roster = list(roster)
        existing_by_athlete = {record.athlete_id: record for record in records}

        draft = {}
        for athlete in roster:
            record = existing_by_athlete.get(athlete.id)
            if record is not None:
                draft[athlete.id] = DraftEntry(
                    is_present=record.is_present,
                    justification=record.justification,
                )
            else:
                draft[athlete.id] = DraftEntry(is_present=False, justification="")

        self.date = date
        self._roster = roster
        self._draft = draft

        logger.info(
            f"Seeded attendance draft for {date}: {len(roster)} athletes, "
            f"{sum(1 for a in roster if a.id in existing_by_athlete)} with saved records"
        )

    def clear(self):
        self.date = None
        self._roster = []
        self._draft = {}

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    @property
    def roster(self) -> List[Athlete]:
        return list(self._roster)

    def __len__(self) -> int:
        return len(self._roster)

    def __contains__(self, athlete_id: int) -> bool:
        return athlete_id in self._draft

    def get(self, athlete_id: int) -> DraftEntry:
        return replace(self._entry(athlete_id))

    def entries(self) -> Dict[int, DraftEntry]:
        """Copy of the draft, in roster order."""
        return {athlete.id: replace(self._draft[athlete.id]) for athlete in self._roster}

    def summary(self) -> Dict[str, int]:
        present = sum(1 for entry in self._draft.values() if entry.is_present)
        return {
            'present': present,
            'absent': len(self._draft) - present,
            'total': len(self._draft),
        }

    def _entry(self, athlete_id: int) -> DraftEntry:
        try:
            return self._draft[athlete_id]
        except KeyError:
            raise UnknownAthleteError(athlete_id)

    # ------------------------------------------------------------------
    # edits
    # ------------------------------------------------------------------

    def set_present(self, athlete_id: int, is_present: bool):
        """Present clears the justification; absent keeps whatever was typed."""
        entry = self._entry(athlete_id)
        entry.is_present = bool(is_present)
        if entry.is_present:
            entry.justification = ""

    def toggle(self, athlete_id: int) -> bool:
        entry = self._entry(athlete_id)
        self.set_present(athlete_id, not entry.is_present)
        return entry.is_present

    def set_justification(self, athlete_id: int, text: Optional[str]) -> bool:
        """
        Set the absence justification.

        Returns:
            False if the athlete is present (the text is ignored)
        """
        entry = self._entry(athlete_id)
        if entry.is_present:
            logger.debug(f"Ignoring justification for present athlete {athlete_id}")
            return False
        entry.justification = text or ""
        return True

    def mark_all_present(self):
        """Every athlete of the loaded roster becomes present, justifications cleared."""
        self._draft = {
            athlete.id: DraftEntry(is_present=True, justification="")
            for athlete in self._roster
        }

    def mark_all_absent(self):
        for entry in self._draft.values():
            entry.is_present = False

    # ------------------------------------------------------------------
    # payload
    # ------------------------------------------------------------------

    def build_records(self) -> List[Dict]:
        """One bulk record per roster athlete, in roster order."""
        records = []
        for athlete in self._roster:
            entry = self._draft[athlete.id]
            records.append({
                'athlete_id': athlete.id,
                'is_present': entry.is_present,
                'justification': None if entry.is_present else (entry.justification or None),
            })
        return records

"""Append-only transcript log with interim text and display projections."""

from __future__ import annotations

import itertools
import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from models import KeyMoment, TranscriptEntry

log = logging.getLogger(__name__)

DEFAULT_SPEAKER = "Speaker"

AppendListener = Callable[[List[TranscriptEntry]], None]


def _clock_label() -> str:
    return datetime.now().strftime("%H:%M:%S")


class TranscriptStore:
    def __init__(
        self,
        on_append: Optional[AppendListener] = None,
        clock_label: Callable[[], str] = _clock_label,
    ) -> None:
        self._on_append = on_append
        self._clock_label = clock_label
        self._entries: List[TranscriptEntry] = []
        self._ids = itertools.count(1)
        self._interim_text = ""

    @property
    def entries(self) -> Sequence[TranscriptEntry]:
        return tuple(self._entries)

    @property
    def interim_text(self) -> str:
        return self._interim_text

    def set_on_append(self, listener: Optional[AppendListener]) -> None:
        self._on_append = listener

    def append(self, text: str, key_moment: Optional[KeyMoment] = None) -> TranscriptEntry:
        entry = TranscriptEntry(
            id=next(self._ids),
            time=self._clock_label(),
            speaker=DEFAULT_SPEAKER,
            text=text,
            key_moment=key_moment,
        )
        self._entries.append(entry)
        log.debug("appended entry %d (%s)", entry.id, key_moment.value if key_moment else "-")
        if self._on_append:
            self._on_append(list(self._entries))
        return entry

    def set_interim(self, text: str) -> None:
        self._interim_text = text

    def toggle_bookmark(self, entry_id: int) -> Optional[TranscriptEntry]:
        for entry in self._entries:
            if entry.id == entry_id:
                entry.bookmarked = not entry.bookmarked
                return entry
        return None

    def project_filtered(
        self,
        speaker: Optional[str] = None,
        query: Optional[str] = None,
    ) -> List[TranscriptEntry]:
        needle = (query or "").strip().lower()
        out = []
        for entry in self._entries:
            if speaker is not None and entry.speaker != speaker:
                continue
            if needle and needle not in entry.text.lower():
                continue
            out.append(entry)
        return out

    def bookmarked(self) -> List[TranscriptEntry]:
        return [e for e in self._entries if e.bookmarked]

    def clear(self) -> None:
        # ids keep counting so entries from before a clear are never aliased
        self._entries = []
        self._interim_text = ""

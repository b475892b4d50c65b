from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Optional, Union

from hibalogique.config import settings
from hibalogique.core.errors import (
    CorruptDataError,
    DuplicateReferenceError,
    EmptyReferenceError,
    InvalidFormatError,
    NotFoundError,
    PersistenceError,
)
from hibalogique.core.logging_config import logger
from hibalogique.domain.quotes import (
    ExportBundle,
    LastSaved,
    LineItem,
    Quote,
    Snapshot,
    copy_lines,
    new_id,
    normalize_snapshot,
    parse_last_saved,
)
from hibalogique.services.pricing import DerivedTotals, compute_totals
from hibalogique.services.reference import next_reference, reference_key
from hibalogique.services.storage import KeyValueStore

DateBound = Union[date, str, None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_date(v: DateBound) -> Optional[date]:
    if isinstance(v, datetime):
        return v.date()
    if v is None or isinstance(v, date):
        return v
    s = v.strip()
    return date.fromisoformat(s) if s else None


@dataclass(frozen=True)
class ImportResult:
    count: int
    last: Optional[LastSaved] = None


class HistoryStore:
    """
    Ordered collection of saved quotations, newest first.

    Backed by one key of a KeyValueStore holding the JSON array of
    snapshots. Every mutation writes the new collection first and only
    swaps the in-memory view once the write went through, so memory never
    runs ahead of what is persisted.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        key: Optional[str] = None,
        last_key: Optional[str] = None,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = new_id,
    ):
        self.kv = kv
        self.key = key or settings.history_key
        self.last_key = last_key or settings.last_key
        self._clock = clock
        self._new_id = id_factory
        self._snapshots: tuple[Snapshot, ...] = ()
        # set when the stored collection could not be parsed; only import/clear may overwrite it
        self._unreadable = False

    # ---- internals -------------------------------------------------

    def _normalize_all(self, records: Iterable[Any]) -> list[Snapshot]:
        now = self._clock()
        out: list[Snapshot] = []
        seen: set[str] = set()
        for raw in records:
            snap = normalize_snapshot(raw, now=now, id_factory=self._new_id)
            if snap.id in seen:
                snap = snap.model_copy(update={"id": self._new_id()})
            seen.add(snap.id)
            out.append(snap)
        return out

    def _ensure_readable(self) -> None:
        if self._unreadable:
            raise CorruptDataError(
                "Stored quote history is corrupted. Import a backup or clear the history first."
            )

    def _write(self, key: str, payload: str) -> None:
        try:
            self.kv.set(key, payload)
        except OSError as e:
            logger.exception("history_persist_failed", key=key)
            raise PersistenceError("Could not save the quote history.") from e

    def _commit(self, snapshots: list[Snapshot]) -> None:
        payload = json.dumps(
            [s.to_json_dict() for s in snapshots], ensure_ascii=False
        )
        self._write(self.key, payload)
        self._snapshots = tuple(snapshots)
        self._unreadable = False

    def _restore_last(self, previous: Optional[str]) -> None:
        try:
            if previous is None:
                self.kv.delete(self.last_key)
            else:
                self.kv.set(self.last_key, previous)
        except OSError:
            # the caller re-raises the original failure
            logger.exception("last_restore_failed", key=self.last_key)

    # ---- reading ---------------------------------------------------

    def reload(self) -> None:
        """(Re)read the collection from the store. Raises CorruptDataError."""
        raw = self.kv.get(self.key)
        if raw is None:
            self._snapshots = ()
            self._unreadable = False
            return
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise CorruptDataError("Stored quote history is corrupted.")
            snapshots = self._normalize_all(data)
        except json.JSONDecodeError as e:
            self._mark_unreadable()
            raise CorruptDataError("Stored quote history is corrupted.") from e
        except CorruptDataError:
            self._mark_unreadable()
            raise
        self._snapshots = tuple(snapshots)
        self._unreadable = False

    def _mark_unreadable(self) -> None:
        self._snapshots = ()
        self._unreadable = True
        logger.warning("history_unreadable", key=self.key)

    @property
    def unreadable(self) -> bool:
        return self._unreadable

    def list(self) -> list[Snapshot]:
        return list(self._snapshots)

    def __len__(self) -> int:
        return len(self._snapshots)

    def get(self, snapshot_id: str) -> Optional[Snapshot]:
        return next((s for s in self._snapshots if s.id == snapshot_id), None)

    def references(self) -> list[str]:
        return [s.reference for s in self._snapshots]

    def filter(
        self,
        query: Optional[str] = None,
        date_from: DateBound = None,
        date_to: DateBound = None,
    ) -> list[Snapshot]:
        q = (query or "").strip().casefold()
        lo = _as_date(date_from)
        hi = _as_date(date_to)

        def matches(s: Snapshot) -> bool:
            if q and q not in s.reference.casefold() and q not in s.quote.sponsor.casefold():
                return False
            d = s.quote.quote_date
            if lo is not None and (d is None or d < lo):
                return False
            if hi is not None and (d is None or d > hi):
                return False
            return True

        return [s for s in self._snapshots if matches(s)]

    # ---- mutations -------------------------------------------------

    def save(self, quote: Quote, lines: list[LineItem], totals: DerivedTotals) -> Snapshot:
        self._ensure_readable()
        snap = Snapshot(
            id=self._new_id(),
            saved_at=self._clock(),
            subtotal=totals.subtotal,
            taxes=totals.taxes,
            total=totals.total,
            quote=quote.model_copy(deep=True),
            lines=copy_lines(lines),
        )
        self._commit([snap, *self._snapshots])
        logger.info("history_saved", id=snap.id, reference=snap.reference, count=len(self._snapshots))
        return snap

    def duplicate(self, snapshot: Snapshot, current_reference: Optional[str] = None) -> Snapshot:
        self._ensure_readable()
        now = self._clock()
        quote = snapshot.quote.model_copy(deep=True)
        quote.quote_number = next_reference(
            self.references(), current_reference, today=now.date()
        )
        lines = copy_lines(snapshot.lines)
        totals = compute_totals(quote, lines)

        dup = Snapshot(
            id=self._new_id(),
            saved_at=now,
            subtotal=totals.subtotal,
            taxes=totals.taxes,
            total=totals.total,
            quote=quote,
            lines=lines,
        )
        self._commit([dup, *self._snapshots])
        logger.info("history_duplicated", source=snapshot.id, id=dup.id, reference=dup.reference)
        return dup

    def rename(self, snapshot_id: str, new_reference: str) -> Snapshot:
        self._ensure_readable()
        ref = (new_reference or "").strip()
        if not ref:
            raise EmptyReferenceError("The quote number cannot be empty.")

        target = self.get(snapshot_id)
        if target is None:
            raise NotFoundError("This quote is no longer in the history.")

        key = reference_key(ref)
        if any(s.id != snapshot_id and reference_key(s.reference) == key for s in self._snapshots):
            raise DuplicateReferenceError(f"{ref} already exists in the history.")

        renamed = target.model_copy(
            update={"quote": target.quote.model_copy(update={"quote_number": ref}, deep=True)}
        )
        self._commit([renamed if s.id == snapshot_id else s for s in self._snapshots])
        logger.info("history_renamed", id=snapshot_id, old=target.reference, new=ref)
        return renamed

    def delete(self, snapshot_id: str) -> bool:
        self._ensure_readable()
        if self.get(snapshot_id) is None:
            return False
        self._commit([s for s in self._snapshots if s.id != snapshot_id])
        logger.info("history_deleted", id=snapshot_id, count=len(self._snapshots))
        return True

    def clear(self) -> None:
        """Drop every snapshot. Not recoverable; callers confirm with the user first."""
        self._commit([])
        logger.info("history_cleared")

    # ---- backup ----------------------------------------------------

    def export_all(self, last: Optional[LastSaved] = None) -> dict[str, Any]:
        bundle = ExportBundle(
            exported_at=self._clock(),
            history=list(self._snapshots),
            last=last,
        )
        return bundle.to_json_dict()

    def import_all(self, bundle: Any) -> ImportResult:
        """
        Replace the whole collection with the bundle's history (no merge).
        Records without id/savedAt get fresh ones; every record ends up
        with at least one line.

        The bundle's `last` record is written to the last-saved key before
        the history; if the history write then fails, the previous
        last-saved value is put back so nothing changes.
        """
        if not isinstance(bundle, dict) or not isinstance(bundle.get("history"), list):
            raise InvalidFormatError("This file is not a quote backup (no history found).")

        snapshots = self._normalize_all(bundle["history"])
        last_raw = bundle.get("last")
        last = parse_last_saved(last_raw) if last_raw else None

        if last is None:
            self._commit(snapshots)
        else:
            previous = self.kv.get(self.last_key)
            self._write(self.last_key, json.dumps(last.to_json_dict(), ensure_ascii=False))
            try:
                self._commit(snapshots)
            except PersistenceError:
                self._restore_last(previous)
                raise
        logger.info("history_imported", count=len(snapshots), has_last=last is not None)
        return ImportResult(count=len(snapshots), last=last)

    def import_text(self, text: str) -> ImportResult:
        try:
            bundle = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptDataError("The backup file is not valid JSON.") from e
        return self.import_all(bundle)

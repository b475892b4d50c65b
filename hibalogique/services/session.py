from __future__ import annotations

import copy
import functools
import json
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from hibalogique.config import settings
from hibalogique.core.errors import (
    CorruptDataError,
    NotFoundError,
    PersistenceError,
    QuoteError,
    ValidationError,
)
from hibalogique.core.logging_config import bind_session, logger, setup_logging
from hibalogique.domain.quotes import (
    LastSaved,
    LineItem,
    Quote,
    Snapshot,
    copy_lines,
    default_quote,
    new_id,
    new_line,
    normalize_lines,
    parse_last_saved,
)
from hibalogique.services.history_store import DateBound, HistoryStore
from hibalogique.services.notices import NoticeBoard
from hibalogique.services.preview_renderer import PreviewRenderer
from hibalogique.services.pricing import DerivedTotals, compute_totals
from hibalogique.services.reference import next_reference
from hibalogique.services.storage import KeyValueStore, get_store


class DisplayMode(str, Enum):
    EDITING = "editing"
    PREVIEWING = "previewing"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _field_names(model: type) -> dict[str, str]:
    """Accept both python names and camelCase aliases for field edits."""
    names: dict[str, str] = {}
    for name, info in model.model_fields.items():
        names[name] = name
        if info.alias:
            names[info.alias] = name
    return names


QUOTE_FIELDS = _field_names(Quote)
LINE_FIELDS = {k: v for k, v in _field_names(LineItem).items() if v != "id"}


def user_action(default: Any = None):
    """
    Run a controller action; a QuoteError becomes a notice and the action
    returns `default`. Unexpected errors are logged and reported the same way.
    """

    def deco(fn):
        @functools.wraps(fn)
        def wrapper(self: "QuoteSession", *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except QuoteError as e:
                self._report(e)
            except Exception:
                logger.exception("action_crashed", action=fn.__name__)
                self.notices.show("Something went wrong, please try again.", "error")
            return copy.copy(default)

        return wrapper

    return deco


class QuoteSession:
    """
    The single live editing session: one quote header, its lines, a dirty
    flag and the edit/preview display mode.

    The session never edits snapshots itself; everything history-related
    goes through the HistoryStore.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        history: Optional[HistoryStore] = None,
        notices: Optional[NoticeBoard] = None,
        renderer: Optional[PreviewRenderer] = None,
        clock: Callable[[], datetime] = _utc_now,
        last_key: Optional[str] = None,
    ):
        self.kv = kv
        self.last_key = last_key or settings.last_key
        self._clock = clock
        self.history = history if history is not None else HistoryStore(kv, last_key=self.last_key, clock=clock)
        self.notices = notices if notices is not None else NoticeBoard(ttl=settings.notice_ttl_seconds)
        self.renderer = renderer if renderer is not None else PreviewRenderer()

        self.mode = DisplayMode.EDITING
        self.quote: Quote = default_quote(self._today())
        self.lines: list[LineItem] = [new_line()]
        self.dirty = False

        try:
            self.history.reload()
        except CorruptDataError as e:
            self._report(e)

    # ---- helpers ---------------------------------------------------

    def _today(self) -> date:
        return self._clock().date()

    def _report(self, e: QuoteError) -> None:
        logger.warning("action_failed", code=e.code, message=e.message)
        self.notices.show(e.message, "error")

    def _find_line(self, line_id: str) -> LineItem:
        line = next((ln for ln in self.lines if ln.id == line_id), None)
        if line is None:
            raise NotFoundError("This line no longer exists.")
        return line

    def _find_snapshot(self, snapshot: Union[Snapshot, str]) -> Snapshot:
        snapshot_id = snapshot.id if isinstance(snapshot, Snapshot) else snapshot
        found = self.history.get(snapshot_id)
        if found is None:
            raise NotFoundError("This quote is no longer in the history.")
        return found

    def _replace_live(self, quote: Quote, lines: list[LineItem]) -> None:
        self.quote = quote.model_copy(deep=True)
        self.lines = normalize_lines(copy_lines(lines))
        self.dirty = False

    def _write_last(self, last: LastSaved) -> None:
        try:
            self.kv.set(self.last_key, json.dumps(last.to_json_dict(), ensure_ascii=False))
        except OSError as e:
            logger.exception("last_saved_persist_failed", key=self.last_key)
            raise PersistenceError("Could not store the last saved quote.") from e

    def _read_last(self) -> LastSaved:
        raw = self.kv.get(self.last_key)
        if raw is None:
            raise NotFoundError("No saved quote found.")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptDataError("The saved quote is corrupted.") from e
        return parse_last_saved(data)

    # ---- derived ---------------------------------------------------

    @property
    def totals(self) -> DerivedTotals:
        return compute_totals(self.quote, self.lines)

    # ---- editing ---------------------------------------------------

    @user_action()
    def new_quote(self) -> None:
        # the displayed reference number survives a reset
        self.quote = default_quote(self._today(), quote_number=self.quote.quote_number)
        self.lines = [new_line()]
        self.dirty = False

    @user_action()
    def add_line(self) -> LineItem:
        line = new_line()
        self.lines.append(line)
        self.dirty = True
        return line

    @user_action(default=False)
    def remove_line(self, line_id: str) -> bool:
        if len(self.lines) <= 1:
            return False
        line = self._find_line(line_id)
        self.lines.remove(line)
        self.dirty = True
        return True

    @user_action(default=False)
    def update_field(self, name: str, value: Any) -> bool:
        field = QUOTE_FIELDS.get(name)
        if field is None:
            raise ValidationError(f"Unknown quote field: {name}")
        try:
            setattr(self.quote, field, value)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid value for {name}.") from e
        self.dirty = True
        return True

    @user_action(default=False)
    def update_line(self, line_id: str, name: str, value: Any) -> bool:
        field = LINE_FIELDS.get(name)
        if field is None:
            raise ValidationError(f"Unknown line field: {name}")
        line = self._find_line(line_id)
        try:
            setattr(line, field, value)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid value for {name}.") from e
        self.dirty = True
        return True

    # ---- save / load -----------------------------------------------

    @user_action()
    def save(self) -> Optional[Snapshot]:
        if not self.quote.sponsor.strip():
            raise ValidationError("Please enter the sponsor name before saving.")

        ref = next_reference(
            self.history.references(), self.quote.quote_number, today=self._today()
        )
        quote = self.quote.model_copy(deep=True)
        quote.quote_number = ref
        snap = self.history.save(quote, self.lines, compute_totals(quote, self.lines))

        self.quote.quote_number = ref
        self.dirty = False
        try:
            self._write_last(LastSaved(quote=quote, lines=copy_lines(self.lines), saved_at=snap.saved_at))
        except PersistenceError as e:
            # the snapshot itself is in history; only the "last saved" slot is stale
            self._report(e)
            return snap

        self.notices.show(f"{ref} saved.", "success")
        return snap

    @user_action(default=False)
    def load(self) -> bool:
        last = self._read_last()
        self._replace_live(last.quote, last.lines)
        logger.info("last_saved_loaded", reference=self.quote.quote_number)
        self.notices.show("Last saved quote loaded.", "success")
        return True

    # ---- history ---------------------------------------------------

    @user_action(default=False)
    def open_from_history(self, snapshot: Union[Snapshot, str]) -> bool:
        snap = self._find_snapshot(snapshot)
        self._replace_live(snap.quote, snap.lines)
        self.notices.show(f"{snap.reference} opened.", "info")
        return True

    @user_action()
    def duplicate(self, snapshot: Union[Snapshot, str]) -> Optional[Snapshot]:
        snap = self._find_snapshot(snapshot)
        dup = self.history.duplicate(snap, current_reference=self.quote.quote_number)
        self.notices.show(f"Duplicated as {dup.reference}.", "success")
        return dup

    @user_action()
    def rename(self, snapshot: Union[Snapshot, str], new_reference: str) -> Optional[Snapshot]:
        snap = self._find_snapshot(snapshot)
        renamed = self.history.rename(snap.id, new_reference)
        self.notices.show(f"Renamed to {renamed.reference}.", "success")
        return renamed

    @user_action(default=False)
    def delete(self, snapshot: Union[Snapshot, str]) -> bool:
        snapshot_id = snapshot.id if isinstance(snapshot, Snapshot) else snapshot
        removed = self.history.delete(snapshot_id)
        if removed:
            self.notices.show("Quote deleted from history.", "info")
        return removed

    @user_action(default=False)
    def clear_history(self, confirm: Callable[[], bool]) -> bool:
        if not confirm():
            return False
        self.history.clear()
        self.notices.show("History cleared.", "info")
        return True

    @user_action(default=[])
    def filter_history(
        self,
        query: Optional[str] = None,
        date_from: DateBound = None,
        date_to: DateBound = None,
    ) -> list[Snapshot]:
        try:
            return self.history.filter(query, date_from, date_to)
        except ValueError as e:
            raise ValidationError("Dates must use the YYYY-MM-DD format.") from e

    # ---- export / import -------------------------------------------

    @user_action()
    def export_bundle(self) -> Optional[dict[str, Any]]:
        last = LastSaved(quote=self.quote, lines=copy_lines(self.lines), saved_at=self._clock())
        return self.history.export_all(last=last)

    @user_action()
    def export_json(self) -> Optional[str]:
        last = LastSaved(quote=self.quote, lines=copy_lines(self.lines), saved_at=self._clock())
        return json.dumps(self.history.export_all(last=last), ensure_ascii=False, indent=2)

    @user_action(default=False)
    def import_text(self, text: str) -> bool:
        result = self.history.import_text(text)
        self.notices.show(f"{result.count} quote(s) imported.", "success")
        return True

    async def import_from(self, read: Callable[[], Awaitable[str]]) -> bool:
        """
        Import a backup delivered by an async file reader. The read is the
        only suspension point; the store mutation runs after it completes.
        """
        try:
            text = await read()
        except (OSError, UnicodeDecodeError):
            logger.exception("import_read_failed")
            self.notices.show("Could not read the selected file.", "error")
            return False
        return self.import_text(text)

    # ---- display mode ----------------------------------------------

    def preview(self) -> bool:
        if self.mode is not DisplayMode.EDITING:
            return False
        self.mode = DisplayMode.PREVIEWING
        return True

    def back_to_edit(self) -> bool:
        if self.mode is not DisplayMode.PREVIEWING:
            return False
        self.mode = DisplayMode.EDITING
        return True

    @user_action()
    def render_preview(self) -> Optional[str]:
        if self.mode is not DisplayMode.PREVIEWING:
            raise ValidationError("Open the preview before printing.")
        return self.renderer.render(self.quote, self.lines, self.totals)


def open_session(kv: Optional[KeyValueStore] = None) -> QuoteSession:
    """Wire up logging + the configured store and start a session."""
    setup_logging()
    bind_session(new_id())
    return QuoteSession(kv if kv is not None else get_store())

"""
Per-user shift store: cache first, database second.

Every write lands in the attendance cache immediately and is then written
to the database, which stays the source of truth. A database write that
keeps failing after ATTENDANCE_SYNC_RETRIES attempts is queued and replayed
on the next sync; the cached value stands in the meantime.

Shifts are cached as plain dicts (ISO strings for dates and times) so any
cache backend can hold them.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import date, datetime, timezone as dt_timezone

from django.conf import settings
from django.core.cache import caches
from django.db import DatabaseError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .models import ActiveShift, DayType, Shift

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=dt_timezone.utc)


# =============================================================================
# Record conversion
# =============================================================================

def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return parse_datetime(value)


def shift_to_record(shift: Shift) -> dict:
    return {
        "id": str(shift.pk) if shift.pk else str(uuid.uuid4()),
        "user_id": shift.user_id,
        "user_name": shift.user_name,
        "date": _iso(shift.date),
        "check_in": _iso(shift.check_in),
        "check_out": _iso(shift.check_out),
        "note": shift.note or "",
        "duration": shift.duration or 0,
        "break_minutes": shift.break_minutes,
        "updated_at": _iso(shift.updated_at),
    }


def record_to_shift(record: dict) -> Shift:
    """Unsaved Shift instance for display and calculations."""
    return Shift(
        id=uuid.UUID(record["id"]),
        user_id=record["user_id"],
        user_name=record["user_name"],
        date=parse_date(record["date"]) if isinstance(record["date"], str) else record["date"],
        check_in=_parse_dt(record["check_in"]),
        check_out=_parse_dt(record["check_out"]),
        note=record["note"],
        duration=record["duration"],
        break_minutes=record["break_minutes"],
        updated_at=_parse_dt(record["updated_at"]),
    )


def active_to_record(active: ActiveShift) -> dict:
    return {
        "user_id": active.user_id,
        "user_name": active.user_name,
        "check_in": _iso(active.check_in),
        "note": active.note or "",
        "day_type": active.day_type or DayType.OFFICE,
    }


def record_to_active(record: dict) -> ActiveShift:
    return ActiveShift(
        user_id=record["user_id"],
        user_name=record["user_name"],
        check_in=_parse_dt(record["check_in"]),
        note=record["note"],
        day_type=record["day_type"],
    )


def _written_at(record: dict) -> datetime:
    return _parse_dt(record.get("updated_at")) or _EPOCH


def _day_key(record: dict) -> tuple:
    return (record["user_id"], record["date"])


# =============================================================================
# Merging
# =============================================================================

def cleanup_duplicate_shifts(records: list[dict]) -> list[dict]:
    """Keep the most recently written record per (user, date)."""
    latest: dict[tuple, dict] = {}
    for record in records:
        key = _day_key(record)
        current = latest.get(key)
        if current is None or (_written_at(record), record["id"]) > (_written_at(current), current["id"]):
            latest[key] = record
    return sorted(latest.values(), key=lambda r: (r["date"], r["check_in"] or ""), reverse=True)


def merge_shifts(local: list[dict], remote: list[dict]) -> list[dict]:
    """
    Last write wins per (user, date). The remote copy wins ties and
    local-only records are kept.
    """
    merged = {_day_key(r): r for r in local}
    for record in remote:
        key = _day_key(record)
        mine = merged.get(key)
        if mine is None or _written_at(record) >= _written_at(mine):
            merged[key] = record
    return list(merged.values())


# =============================================================================
# Store
# =============================================================================

class ShiftStore:
    """Shifts and the active shift of one user."""

    def __init__(self, user):
        self.user = user
        self.user_id = user.pk
        self.cache = caches[settings.ATTENDANCE_CACHE_ALIAS]

    # --- cache keys -----------------------------------------------------------

    @property
    def shifts_key(self) -> str:
        return f"attendance:shifts:{self.user_id}"

    @property
    def active_key(self) -> str:
        return f"attendance:active:{self.user_id}"

    @property
    def pending_key(self) -> str:
        return f"attendance:pending:{self.user_id}"

    def _read(self) -> list[dict] | None:
        return self.cache.get(self.shifts_key)

    def _write(self, records: list[dict]) -> None:
        self.cache.set(self.shifts_key, records, timeout=settings.ATTENDANCE_CACHE_TIMEOUT)

    def _write_active(self, active: ActiveShift | None) -> None:
        value = active_to_record(active) if active is not None else {}
        self.cache.set(self.active_key, value, timeout=settings.ATTENDANCE_CACHE_TIMEOUT)

    def pending(self) -> list[dict]:
        return self.cache.get(self.pending_key) or []

    def evict(self) -> None:
        self.cache.delete_many([self.shifts_key, self.active_key, self.pending_key])

    def rename(self, name: str) -> None:
        """Rewrite user_name in the cached shifts, active shift and queued writes."""
        records = self._read()
        if records is not None:
            for record in records:
                record["user_name"] = name
            self._write(records)

        active = self.cache.get(self.active_key)
        if active:
            active["user_name"] = name
            self.cache.set(self.active_key, active, timeout=settings.ATTENDANCE_CACHE_TIMEOUT)

        queued = self.pending()
        if queued:
            for entry in queued:
                if isinstance(entry["payload"], dict) and "user_name" in entry["payload"]:
                    entry["payload"]["user_name"] = name
            self.cache.set(self.pending_key, queued, timeout=settings.ATTENDANCE_CACHE_TIMEOUT)

    # --- pending queue --------------------------------------------------------

    @staticmethod
    def _targets(op: str, payload) -> set[str]:
        """The (user, date) keys a write touches; "active" for the active shift."""
        if op in ("upsert", "update", "delete"):
            return {payload["date"]} if payload.get("date") else set()
        if op == "delete_dates":
            return set(payload)
        return {"active"}

    def _supersede(self, op: str, payload) -> None:
        """
        Drop queued writes for the keys a newer write touches. A queued
        delete_dates only loses the overlapping dates.
        """
        queued = self.pending()
        if not queued:
            return
        targets = self._targets(op, payload)
        if not targets:
            return

        remaining = []
        changed = False
        for entry in queued:
            touched = self._targets(entry["op"], entry["payload"]) & targets
            if not touched:
                remaining.append(entry)
                continue
            changed = True
            if entry["op"] == "delete_dates":
                dates = [d for d in entry["payload"] if d not in targets]
                if dates:
                    remaining.append({"op": "delete_dates", "payload": dates})

        if not changed:
            return
        logger.info("Superseded queued writes for user %s, %d left", self.user_id, len(remaining))
        if remaining:
            self.cache.set(self.pending_key, remaining, timeout=settings.ATTENDANCE_CACHE_TIMEOUT)
        else:
            self.cache.delete(self.pending_key)

    # --- database writes ------------------------------------------------------

    def _remote(self, op: str, payload, queue_on_failure: bool = True) -> tuple[bool, object]:
        """
        Run a database write with retries. Returns (ok, result).

        A new write (queue_on_failure) replaces whatever is still queued for
        the same keys, so a later replay cannot undo it.
        """
        if queue_on_failure:
            self._supersede(op, payload)
        handler = getattr(self, f"_remote_{op}")
        attempts = max(1, settings.ATTENDANCE_SYNC_RETRIES)
        delay = settings.ATTENDANCE_SYNC_RETRY_DELAY

        for attempt in range(1, attempts + 1):
            try:
                with transaction.atomic():
                    return True, handler(payload)
            except DatabaseError as exc:
                logger.warning(
                    "Database write %s for user %s failed (attempt %d/%d): %s",
                    op, self.user_id, attempt, attempts, exc,
                )
                if attempt < attempts and delay:
                    time.sleep(delay * attempt)

        if queue_on_failure:
            self.cache.set(
                self.pending_key,
                self.pending() + [{"op": op, "payload": payload}],
                timeout=settings.ATTENDANCE_CACHE_TIMEOUT,
            )
        logger.error("Database write %s for user %s failed, kept in local store", op, self.user_id)
        return False, None

    def _remote_upsert(self, record: dict) -> Shift:
        fields = {
            "user_name": record["user_name"],
            "check_in": _parse_dt(record["check_in"]),
            "check_out": _parse_dt(record["check_out"]),
            "note": record["note"],
            "duration": record["duration"],
            "break_minutes": record["break_minutes"],
        }
        shift, _ = Shift.objects.update_or_create(
            user_id=record["user_id"],
            date=parse_date(record["date"]),
            defaults=fields,
            create_defaults={**fields, "id": uuid.UUID(record["id"])},
        )
        return shift

    def _remote_update(self, record: dict) -> int:
        return Shift.objects.filter(user_id=record["user_id"], date=parse_date(record["date"])).update(
            check_in=_parse_dt(record["check_in"]),
            check_out=_parse_dt(record["check_out"]),
            note=record["note"],
            duration=record["duration"],
            break_minutes=record["break_minutes"],
            updated_at=timezone.now(),
        )

    def _remote_delete(self, payload: dict) -> int:
        shifts = Shift.objects.filter(user_id=self.user_id)
        if payload.get("date"):
            shifts = shifts.filter(date=parse_date(payload["date"]))
        else:
            shifts = shifts.filter(pk=payload["id"])
        deleted, _ = shifts.delete()
        return deleted

    def _remote_delete_dates(self, dates: list[str]) -> int:
        deleted, _ = Shift.objects.filter(user_id=self.user_id, date__in=dates).delete()
        return deleted

    def _remote_set_active(self, record: dict) -> ActiveShift:
        active, _ = ActiveShift.objects.update_or_create(
            user_id=record["user_id"],
            defaults={
                "user_name": record["user_name"],
                "check_in": _parse_dt(record["check_in"]),
                "note": record["note"],
                "day_type": record["day_type"],
            },
        )
        return active

    def _remote_clear_active(self, _payload) -> int:
        deleted, _ = ActiveShift.objects.filter(user_id=self.user_id).delete()
        return deleted

    def flush_pending(self) -> int:
        """Replay queued database writes. Returns how many are still pending."""
        queued = self.pending()
        if not queued:
            return 0

        remaining = []
        for entry in queued:
            ok, _ = self._remote(entry["op"], entry["payload"], queue_on_failure=False)
            if not ok:
                remaining.append(entry)

        if remaining:
            self.cache.set(self.pending_key, remaining, timeout=settings.ATTENDANCE_CACHE_TIMEOUT)
        else:
            self.cache.delete(self.pending_key)
        logger.info("Replayed %d queued writes for user %s, %d left", len(queued) - len(remaining), self.user_id, len(remaining))
        return len(remaining)

    # --- reads ----------------------------------------------------------------

    def sync_from_remote(self) -> list[dict]:
        """Merge the database rows into the cache and return the result."""
        local = self._read() or []
        self.flush_pending()

        try:
            remote = [shift_to_record(s) for s in Shift.objects.filter(user_id=self.user_id)]
            active = ActiveShift.objects.filter(user_id=self.user_id).first()
        except DatabaseError:
            logger.exception("Could not load shifts for user %s, using local store", self.user_id)
            return local

        merged = cleanup_duplicate_shifts(merge_shifts(local, remote))
        self._write(merged)
        self._write_active(active)
        return merged

    def get_shifts(self) -> list[dict]:
        records = self._read()
        if records is None:
            return self.sync_from_remote()

        cleaned = cleanup_duplicate_shifts(records)
        if len(cleaned) != len(records):
            logger.info("Removed %d duplicate shifts for user %s", len(records) - len(cleaned), self.user_id)
            self._write(cleaned)
        return cleaned

    def shifts_for_month(self, year: int, month: int) -> list[Shift]:
        prefix = f"{year:04d}-{month:02d}-"
        return [record_to_shift(r) for r in self.get_shifts() if r["date"].startswith(prefix)]

    def get_shift(self, shift_id) -> Shift | None:
        shift_id = str(shift_id)
        for record in self.get_shifts():
            if record["id"] == shift_id:
                return record_to_shift(record)
        return None

    # --- shift writes ---------------------------------------------------------

    def add_shift(self, shift: Shift) -> Shift:
        """Insert or overwrite the shift for shift.date."""
        record = shift_to_record(shift)
        record["updated_at"] = _iso(timezone.now())

        records = self.get_shifts()
        for index, existing in enumerate(records):
            if _day_key(existing) == _day_key(record):
                record["id"] = existing["id"]
                records[index] = record
                break
        else:
            records.append(record)
        self._write(records)

        ok, saved = self._remote("upsert", record)
        if ok:
            record["id"] = str(saved.pk)
            record["updated_at"] = _iso(saved.updated_at)
            self._write(records)
        return record_to_shift(record)

    def update_shift(self, shift: Shift) -> Shift:
        record = shift_to_record(shift)
        record["updated_at"] = _iso(timezone.now())

        records = self.get_shifts()
        for index, existing in enumerate(records):
            if existing["id"] == record["id"]:
                records[index] = record
                self._write(records)
                break

        self._remote("update", record)
        return record_to_shift(record)

    def delete_shift(self, shift_id) -> bool:
        shift_id = str(shift_id)
        records = self.get_shifts()
        kept = [r for r in records if r["id"] != shift_id]
        dates = [r["date"] for r in records if r["id"] == shift_id]
        self._write(kept)
        self._remote("delete", {"id": shift_id, "date": dates[0] if dates else None})
        return len(kept) != len(records)

    def delete_shifts_by_dates(self, dates) -> int:
        """Delete the user's shifts on the given dates. Returns the local count."""
        wanted = {d.isoformat() if isinstance(d, date) else str(d) for d in dates}
        records = self.get_shifts()
        kept = [r for r in records if r["date"] not in wanted]
        self._write(kept)
        self._remote("delete_dates", sorted(wanted))
        return len(records) - len(kept)

    # --- active shift ---------------------------------------------------------

    def get_active_shift(self) -> ActiveShift | None:
        value = self.cache.get(self.active_key)
        if value is None:
            try:
                active = ActiveShift.objects.filter(user_id=self.user_id).first()
            except DatabaseError:
                logger.exception("Could not load active shift for user %s", self.user_id)
                return None
            self._write_active(active)
            return active
        return record_to_active(value) if value else None

    def set_active_shift(self, active: ActiveShift | None) -> None:
        self._write_active(active)
        if active is None:
            self._remote("clear_active", None)
        else:
            self._remote("set_active", active_to_record(active))

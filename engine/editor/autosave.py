"""
Codezoo Editor: Save State Machine

    idle --edit--> dirty --save--> saving --ok--> idle
                                          --fail--> error --edit--> dirty

Every edit or preprocessor change marks the pen dirty and re-arms the
autosave timer. A save request while another is in flight is ignored; there
is no queue. Each successful save creates a new immutable revision tagged
SNAPSHOT (manual) or AUTOSAVE. Failures are logged and surfaced as a status
message, never raised, and never discard in-memory edits.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Literal

from engine.editor.timers import TimerHandle, TimerScheduler
from engine.editor.types import AUTOSAVE_DELAY_MS, RevisionDraft, SavedRevision, SaveMode

logger = logging.getLogger(__name__)

SaveStatus = Literal["idle", "dirty", "saving", "error"]

AUTOSAVE_FAILED = "Autosave failed. Use Save to try again."
MANUAL_SAVE_FAILED = "Could not save changes. Please try again."

SaveFn = Callable[[RevisionDraft], Awaitable[SavedRevision]]
SnapshotFn = Callable[[], tuple[dict[str, str], dict[str, str]]]


class SaveStateMachine:
    """Dirty tracking plus manual and timed saves for one pen at a time."""

    def __init__(
        self,
        save_fn: SaveFn,
        snapshot_fn: SnapshotFn,
        scheduler: TimerScheduler,
        autosave_delay_ms: int = AUTOSAVE_DELAY_MS,
        on_status_change: Callable[[SaveStateMachine], None] | None = None,
    ):
        self.save_fn = save_fn
        self.snapshot_fn = snapshot_fn
        self.scheduler = scheduler
        self.autosave_delay_ms = autosave_delay_ms
        self.on_status_change = on_status_change

        self.pen_id: str | None = None
        self.status: SaveStatus = "idle"
        self.mode: SaveMode | None = None
        self.error_message: str | None = None
        self.has_unsaved_changes = False
        self.last_saved_at: datetime | None = None

        self._timer: TimerHandle | None = None
        self._edit_version = 0
        self._epoch = 0

    def reset(self, pen_id: str, last_saved_at: datetime | None = None) -> None:
        """Forget everything about the previous pen. An in-flight save result is ignored."""
        self._cancel_timer()
        self._epoch += 1
        self.pen_id = pen_id
        self.status = "idle"
        self.mode = None
        self.error_message = None
        self.has_unsaved_changes = False
        self.last_saved_at = last_saved_at

    def close(self) -> None:
        self._cancel_timer()
        self._epoch += 1

    def mark_dirty(self) -> None:
        """Record an edit. Re-arms autosave unless a save is already running."""
        self._edit_version += 1
        self.has_unsaved_changes = True
        if self.status == "saving":
            return
        self.status = "dirty"
        self.error_message = None
        self._schedule_autosave()
        self._notify()

    @property
    def can_save(self) -> bool:
        return self.pen_id is not None and self.has_unsaved_changes and self.status != "saving"

    async def save(self, mode: SaveMode = "manual") -> bool:
        """
        Persist the current sources as a new revision.

        Returns:
            True if a revision was written for the current pen
        """
        if not self.can_save:
            logger.debug(
                "autosave: skipping save mode=%s unsaved=%s status=%s",
                mode,
                self.has_unsaved_changes,
                self.status,
            )
            return False

        self._cancel_timer()
        epoch = self._epoch
        version = self._edit_version
        code, preprocessors = self.snapshot_fn()
        draft = RevisionDraft(
            pen_id=self.pen_id,
            html=code["html"],
            css=code["css"],
            js=code["js"],
            preprocessors=preprocessors,
            kind="AUTOSAVE" if mode == "autosave" else "SNAPSHOT",
        )

        self.status = "saving"
        self.mode = mode
        self.error_message = None
        self._notify()
        logger.debug("autosave: starting save mode=%s pen_id=%s", mode, self.pen_id)

        try:
            saved = await self.save_fn(draft)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("autosave: failed to save pen_id=%s mode=%s", draft.pen_id, mode)
            if epoch != self._epoch:
                return False
            self.status = "error"
            self.error_message = AUTOSAVE_FAILED if mode == "autosave" else MANUAL_SAVE_FAILED
            self._notify()
            return False

        if epoch != self._epoch:
            return False

        self.last_saved_at = saved.updated_at
        if self._edit_version == version:
            self.has_unsaved_changes = False
            self.status = "idle"
        else:
            # Edits arrived while the save was in flight.
            self.status = "dirty"
            self._schedule_autosave()
        self._notify()
        logger.debug("autosave: save success mode=%s rev=%d", mode, saved.rev_number)
        return True

    def describe(self) -> str:
        """Human-readable status line for the editor header."""
        if self.status == "saving":
            return "Autosaving…" if self.mode == "autosave" else "Saving changes…"
        if self.status == "error" and self.error_message:
            return self.error_message
        if self.has_unsaved_changes:
            return "Unsaved changes"
        if self.last_saved_at is None:
            return "Saved"
        return f"Saved {self.last_saved_at.strftime('%H:%M:%S')}"

    def to_dict(self) -> dict[str, object]:
        return {
            "status": self.status,
            "mode": self.mode,
            "message": self.describe(),
            "error": self.error_message,
            "has_unsaved_changes": self.has_unsaved_changes,
            "last_saved_at": self.last_saved_at.isoformat() if self.last_saved_at else None,
        }

    def _schedule_autosave(self) -> None:
        self._cancel_timer()
        logger.debug("autosave: scheduling autosave in %dms", self.autosave_delay_ms)
        self._timer = self.scheduler.schedule(self.autosave_delay_ms / 1000, self._on_timer)

    def _on_timer(self) -> Awaitable[bool]:
        self._timer = None
        logger.debug("autosave: timer fired")
        return self.save("autosave")

    def _cancel_timer(self) -> None:
        self.scheduler.cancel(self._timer)
        self._timer = None

    def _notify(self) -> None:
        if self.on_status_change is not None:
            self.on_status_change(self)

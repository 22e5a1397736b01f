"""
Codezoo Editor: Layout Engine

Owns pane geometry for the editor stack: which panes are visible, how the
main axis is split between them, and interactive divider drags.

The stack direction is always perpendicular to the overall editor/preview
split: a horizontal split stacks panes vertically and vice versa.

Invariants:
  - at least one pane is visible
  - visible pane sizes sum to 100 (collapsed panes read 0)
  - during a drag the two panes beside the divider keep their combined size
    and each keeps at least min(min_pane_percent, pair_total / 2)

Never reads or writes pane source text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from engine.editor.types import MIN_PANE_PERCENT, PANE_IDS, Layout


@dataclass
class _ResizeCapture:
    start_pos: float
    start_sizes: dict[str, float]
    visible_order: list[str]
    index: int
    container_size: float


def _initial_sizes(pane_ids: Sequence[str]) -> dict[str, float]:
    """Even split in whole percents, remainder to the first pane (3 panes -> 34/33/33)."""
    count = len(pane_ids)
    base = 100 // count
    sizes = {pane_id: float(base) for pane_id in pane_ids}
    sizes[pane_ids[0]] = float(100 - base * (count - 1))
    return sizes


class LayoutEngine:
    """Collapsible, resizable stack of N panes."""

    def __init__(
        self,
        pane_ids: Sequence[str] = PANE_IDS,
        layout: Layout = "horizontal",
        min_pane_percent: float = MIN_PANE_PERCENT,
    ):
        if not pane_ids:
            raise ValueError("LayoutEngine needs at least one pane")
        if len(set(pane_ids)) != len(pane_ids):
            raise ValueError("Pane ids must be unique")
        self.pane_ids: tuple[str, ...] = tuple(pane_ids)
        self.layout: Layout = layout
        self.min_pane_percent = min_pane_percent
        self.collapsed: dict[str, bool] = {pane_id: False for pane_id in self.pane_ids}
        self.sizes: dict[str, float] = _initial_sizes(self.pane_ids)
        self._resize: _ResizeCapture | None = None

    # -- orientation --------------------------------------------------------

    @property
    def stack_direction(self) -> Layout:
        return "vertical" if self.layout == "horizontal" else "horizontal"

    def set_orientation(self, layout: Layout) -> None:
        """Set the overall editor/preview split. Proportions are untouched."""
        if layout not in ("horizontal", "vertical"):
            raise ValueError(f"Unknown layout: {layout!r}")
        self.layout = layout

    def toggle_orientation(self) -> Layout:
        self.set_orientation("vertical" if self.layout == "horizontal" else "horizontal")
        return self.layout

    # -- visibility ---------------------------------------------------------

    @property
    def visible_panes(self) -> list[str]:
        return [pane_id for pane_id in self.pane_ids if not self.collapsed[pane_id]]

    def pane_size(self, pane_id: str) -> float:
        """Size for layout purposes: collapsed panes read as 0."""
        self._check_pane(pane_id)
        return 0.0 if self.collapsed[pane_id] else self.sizes[pane_id]

    def can_collapse(self, pane_id: str) -> bool:
        self._check_pane(pane_id)
        return not self.collapsed[pane_id] and len(self.visible_panes) > 1

    def collapse(self, pane_id: str) -> bool:
        """
        Collapse a pane, giving its share to the remaining visible panes.

        Each remaining pane receives the freed space in proportion to its
        current size (evenly if the remaining total is zero). Collapsing the
        last visible pane, or an already collapsed one, is a no-op.

        Returns:
            True if the layout changed
        """
        if not self.can_collapse(pane_id):
            return False

        self.end_resize()
        remaining = [p for p in self.visible_panes if p != pane_id]
        freed = self.sizes[pane_id]
        remaining_total = sum(self.sizes[p] for p in remaining)

        for p in remaining:
            share = self.sizes[p] / remaining_total if remaining_total > 0 else 1 / len(remaining)
            self.sizes[p] = self.sizes[p] + freed * share

        self.sizes[pane_id] = 0.0
        self.collapsed[pane_id] = True
        return True

    def expand(self, pane_id: str) -> bool:
        """
        Expand a collapsed pane to an equal share of the stack.

        The expanded pane gets 100 / visible_count; the others are rescaled
        to fill the rest while keeping their ratios. The pane's size before
        it was collapsed is not restored.

        Returns:
            True if the layout changed
        """
        self._check_pane(pane_id)
        if not self.collapsed[pane_id]:
            return False

        self.end_resize()
        self.collapsed[pane_id] = False
        visible = self.visible_panes
        others = [p for p in visible if p != pane_id]
        new_share = 100 / len(visible)
        others_total = sum(self.sizes[p] for p in others)

        self.sizes[pane_id] = new_share
        for p in others:
            ratio = self.sizes[p] / others_total if others_total > 0 else 1 / len(others)
            self.sizes[p] = (100 - new_share) * ratio
        return True

    def toggle_collapse(self, pane_id: str) -> bool:
        self._check_pane(pane_id)
        if self.collapsed[pane_id]:
            return self.expand(pane_id)
        return self.collapse(pane_id)

    # -- resize -------------------------------------------------------------

    @property
    def dragging_divider(self) -> int | None:
        return self._resize.index if self._resize else None

    @property
    def divider_count(self) -> int:
        return max(len(self.visible_panes) - 1, 0)

    def begin_resize(self, divider_index: int, pointer_position: float, container_size: float) -> bool:
        """
        Start dragging the divider between visible panes index and index + 1.

        Args:
            divider_index: Index among visible panes of the pane left of the divider
            pointer_position: Pointer coordinate along the stack's main axis (px)
            container_size: Stack extent along the main axis (px)

        Returns:
            True if a drag was captured
        """
        visible = self.visible_panes
        if len(visible) < 2 or not 0 <= divider_index < len(visible) - 1:
            return False

        self._resize = _ResizeCapture(
            start_pos=pointer_position,
            start_sizes=dict(self.sizes),
            visible_order=visible,
            index=divider_index,
            container_size=container_size,
        )
        return True

    def update_resize(self, pointer_position: float) -> bool:
        """
        Move the active divider. Synchronous; called once per pointer move.

        Returns:
            True if sizes changed
        """
        capture = self._resize
        if capture is None or not capture.container_size:
            return False

        left_id = capture.visible_order[capture.index]
        right_id = capture.visible_order[capture.index + 1]
        total = capture.start_sizes[left_id] + capture.start_sizes[right_id]
        if total <= 0:
            return False

        delta_percent = (pointer_position - capture.start_pos) / capture.container_size * 100
        min_allowed = min(self.min_pane_percent, total / 2)
        next_left = capture.start_sizes[left_id] + delta_percent
        next_left = max(min_allowed, min(total - min_allowed, next_left))

        self.sizes[left_id] = next_left
        self.sizes[right_id] = total - next_left
        return True

    def end_resize(self) -> None:
        self._resize = None

    # -- queries ------------------------------------------------------------

    def visible_total(self) -> float:
        return sum(self.sizes[p] for p in self.visible_panes)

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready view of the layout for the client."""
        return {
            "layout": self.layout,
            "stack_direction": self.stack_direction,
            "panes": [
                {
                    "id": pane_id,
                    "collapsed": self.collapsed[pane_id],
                    "size": self.pane_size(pane_id),
                    "collapse_disabled": not self.collapsed[pane_id] and len(self.visible_panes) == 1,
                }
                for pane_id in self.pane_ids
            ],
            "dragging_divider": self.dragging_divider,
            "min_pane_percent": self.min_pane_percent,
        }

    def _check_pane(self, pane_id: str) -> None:
        if pane_id not in self.collapsed:
            raise ValueError(f"Unknown pane: {pane_id!r}")

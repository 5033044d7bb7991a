"""
erp_engines.blind_count -- Blind-count session state machine.

Responsibility:
    Model the return count of event stock as an explicit finite-state value
    so that transition guards can be tested without any UI:

        Counting --submit_for_review--> Review --confirm--> Confirmed
            ^                              |
            +------------revise------------+

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Every operation takes a
    session value and returns a new one; nothing is mutated in place.

Invariants enforced:
    - Blind counting: while ``Counting``, the expected quantity is hidden
      from the operator unless explicitly revealed (``toggle_expected``).
      This prevents anchoring the physical count on the system figure.
    - ``Counting -> Review`` requires an explicit count for every line.
      A count of zero is a valid count; ``None`` means "not counted yet".
    - ``Review -> Counting`` is unconditional.
    - ``Review -> Confirmed`` is always allowed, even with divergence.
      Divergent lines should carry a note; ``missing_notes`` reports the
      ones that do not, without blocking.
    - ``Confirmed`` is terminal.

Failure modes:
    - IncompleteCountError when submitting with uncounted lines.
    - InvalidTransitionError for any action not allowed in the current
      state.
    - UnknownLineItemError / InvalidQuantityError for bad count input.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import ClassVar, Iterable, Union

from erp_kernel.exceptions import (
    IncompleteCountError,
    InvalidQuantityError,
    InvalidTransitionError,
    UnknownLineItemError,
)
from erp_kernel.logging_config import get_logger
from erp_engines.divergence import (
    CountedAllocation,
    DivergenceSummary,
    summarize_divergences,
)

logger = get_logger("engines.blind_count")


@dataclass(frozen=True)
class CountLine:
    """One allocation being counted."""

    id: str
    label: str
    expected_quantity: int
    counted_quantity: int | None = None
    notes: str | None = None

    @property
    def is_counted(self) -> bool:
        return self.counted_quantity is not None

    def as_counted(self) -> CountedAllocation:
        return CountedAllocation(
            id=self.id,
            expected_quantity=self.expected_quantity,
            counted_quantity=self.counted_quantity or 0,
            notes=self.notes,
        )


@dataclass(frozen=True)
class Counting:
    """Operator is counting; expected quantities are hidden by default."""

    name: ClassVar[str] = "counting"

    lines: tuple[CountLine, ...]
    reveal_expected: bool = False

    def uncounted_ids(self) -> tuple[str, ...]:
        return tuple(line.id for line in self.lines if not line.is_counted)


@dataclass(frozen=True)
class Review:
    """All lines counted; divergences are shown for confirmation."""

    name: ClassVar[str] = "review"

    lines: tuple[CountLine, ...]
    summary: DivergenceSummary


@dataclass(frozen=True)
class Confirmed:
    """Terminal state: the count was accepted and may be committed."""

    name: ClassVar[str] = "confirmed"

    lines: tuple[CountLine, ...]
    summary: DivergenceSummary


CountSession = Union[Counting, Review, Confirmed]


def _require(session: CountSession, expected: type, action: str) -> None:
    if not isinstance(session, expected):
        raise InvalidTransitionError(session.name, action)


def _replace_line(lines: tuple[CountLine, ...], item_id: str, **changes) -> tuple[CountLine, ...]:
    key = str(item_id)
    if not any(line.id == key for line in lines):
        raise UnknownLineItemError(key)
    return tuple(replace(line, **changes) if line.id == key else line for line in lines)


def _summarize(lines: tuple[CountLine, ...]) -> DivergenceSummary:
    return summarize_divergences(items=[line.as_counted() for line in lines])


def start_count(lines: Iterable[CountLine]) -> Counting:
    """Open a session; any pre-filled counts are discarded."""
    fresh = tuple(replace(line, counted_quantity=None) for line in lines)
    logger.info("blind_count_started", extra={"line_count": len(fresh)})
    return Counting(lines=fresh)


def record_count(session: CountSession, item_id: str, counted: int | None) -> Counting:
    """Set (or clear, with ``None``) the physical count of one line."""
    _require(session, Counting, "record a count")
    if counted is not None and counted < 0:
        raise InvalidQuantityError(f"{item_id}.counted", counted)
    return replace(
        session,
        lines=_replace_line(session.lines, item_id, counted_quantity=counted),
    )


def attach_note(session: CountSession, item_id: str, note: str | None):
    """Attach a free-text note to a line while counting or reviewing."""
    if isinstance(session, Confirmed):
        raise InvalidTransitionError(session.name, "attach a note")
    text = note.strip() if note else None
    lines = _replace_line(session.lines, item_id, notes=text or None)
    if isinstance(session, Review):
        return Review(lines=lines, summary=_summarize(lines))
    return replace(session, lines=lines)


def toggle_expected(session: CountSession) -> Counting:
    """Reveal or hide the expected quantities during counting."""
    _require(session, Counting, "toggle expected quantities")
    return replace(session, reveal_expected=not session.reveal_expected)


def visible_expected(session: CountSession, item_id: str) -> int | None:
    """
    Expected quantity the operator may see for a line.

    ``None`` while counting blind; the real figure once revealed or after
    the session left the counting state.
    """
    key = str(item_id)
    for line in session.lines:
        if line.id == key:
            if isinstance(session, Counting) and not session.reveal_expected:
                return None
            return line.expected_quantity
    raise UnknownLineItemError(key)


def submit_for_review(session: CountSession) -> Review:
    """Move to review once every line has an explicit count."""
    _require(session, Counting, "submit for review")
    missing = session.uncounted_ids()
    if missing:
        logger.info("blind_count_incomplete", extra={"missing": list(missing)})
        raise IncompleteCountError(missing)
    return Review(lines=session.lines, summary=_summarize(session.lines))


def revise(session: CountSession) -> Counting:
    """Go back from review to counting, keeping the counts entered so far."""
    _require(session, Review, "revise the count")
    return Counting(lines=session.lines)


def confirm(session: CountSession) -> Confirmed:
    """Accept the reviewed count."""
    _require(session, Review, "confirm")
    summary = _summarize(session.lines)
    logger.info(
        "blind_count_confirmed",
        extra={
            "line_count": len(session.lines),
            "total_divergence": summary.total_divergence,
            "missing_notes": list(missing_notes(session)),
        },
    )
    return Confirmed(lines=session.lines, summary=summary)


def missing_notes(session: CountSession) -> tuple[str, ...]:
    """Ids of counted, divergent lines that carry no note."""
    return tuple(
        line.id
        for line in session.lines
        if line.is_counted and line.as_counted().is_divergent and not line.notes
    )

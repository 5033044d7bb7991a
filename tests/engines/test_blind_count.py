"""
Tests for the blind-count session state machine.

Covers:
- Expected quantities hidden until revealed
- Counting -> Review guard on uncounted lines
- Review -> Counting and Review -> Confirmed transitions
- Notes on divergent lines and the terminal Confirmed state
"""

import pytest

from erp_engines.blind_count import (
    Confirmed,
    CountLine,
    Counting,
    Review,
    attach_note,
    confirm,
    missing_notes,
    record_count,
    revise,
    start_count,
    submit_for_review,
    toggle_expected,
    visible_expected,
)
from erp_kernel.exceptions import (
    IncompleteCountError,
    InvalidQuantityError,
    InvalidTransitionError,
    UnknownLineItemError,
)


def _session() -> Counting:
    return start_count(
        [
            CountLine(id="a", label="Linen dress", expected_quantity=10),
            CountLine(id="b", label="Wool cardigan", expected_quantity=5),
        ]
    )


def _counted(a=7, b=6) -> Counting:
    session = record_count(_session(), "a", a)
    return record_count(session, "b", b)


class TestCounting:

    def test_start_discards_prefilled_counts(self):
        session = start_count([CountLine(id="a", label="x", expected_quantity=3, counted_quantity=3)])
        assert session.lines[0].counted_quantity is None
        assert session.uncounted_ids() == ("a",)

    def test_expected_hidden_until_revealed(self):
        session = _session()
        assert visible_expected(session, "a") is None

        revealed = toggle_expected(session)
        assert visible_expected(revealed, "a") == 10

        hidden_again = toggle_expected(revealed)
        assert visible_expected(hidden_again, "a") is None

    def test_expected_visible_in_review(self):
        review = submit_for_review(_counted())
        assert visible_expected(review, "b") == 5

    def test_record_and_clear_count(self):
        session = record_count(_session(), "a", 0)
        assert session.lines[0].counted_quantity == 0
        assert session.uncounted_ids() == ("b",)

        cleared = record_count(session, "a", None)
        assert cleared.uncounted_ids() == ("a", "b")

    def test_negative_count_rejected(self):
        with pytest.raises(InvalidQuantityError):
            record_count(_session(), "a", -1)

    def test_unknown_line_rejected(self):
        with pytest.raises(UnknownLineItemError):
            record_count(_session(), "zzz", 1)
        with pytest.raises(UnknownLineItemError):
            visible_expected(_session(), "zzz")

    def test_sessions_are_immutable_values(self):
        original = _session()
        record_count(original, "a", 4)
        assert original.lines[0].counted_quantity is None


class TestTransitions:

    def test_submit_requires_every_line_counted(self):
        session = record_count(_session(), "a", 7)
        with pytest.raises(IncompleteCountError) as exc_info:
            submit_for_review(session)
        assert exc_info.value.missing_ids == ("b",)

    def test_zero_is_a_valid_count(self):
        review = submit_for_review(_counted(a=0, b=0))
        assert isinstance(review, Review)
        assert review.summary.total_divergence == 15

    def test_review_summarizes_divergence(self):
        review = submit_for_review(_counted())
        assert review.summary.total_divergence == 4
        assert review.summary.has_divergence

    def test_revise_keeps_counts(self):
        back = revise(submit_for_review(_counted()))
        assert isinstance(back, Counting)
        assert [line.counted_quantity for line in back.lines] == [7, 6]
        assert back.reveal_expected is False

    def test_confirm_allowed_with_divergence_and_no_notes(self):
        review = submit_for_review(_counted())
        assert missing_notes(review) == ("a", "b")

        confirmed = confirm(review)
        assert isinstance(confirmed, Confirmed)
        assert confirmed.summary.total_divergence == 4

    def test_confirm_only_from_review(self):
        with pytest.raises(InvalidTransitionError):
            confirm(_counted())

    def test_confirmed_is_terminal(self):
        confirmed = confirm(submit_for_review(_counted()))
        with pytest.raises(InvalidTransitionError):
            revise(confirmed)
        with pytest.raises(InvalidTransitionError):
            record_count(confirmed, "a", 1)
        with pytest.raises(InvalidTransitionError):
            attach_note(confirmed, "a", "late note")

    def test_counting_actions_rejected_in_review(self):
        review = submit_for_review(_counted())
        with pytest.raises(InvalidTransitionError):
            record_count(review, "a", 1)
        with pytest.raises(InvalidTransitionError):
            toggle_expected(review)
        with pytest.raises(InvalidTransitionError):
            submit_for_review(review)


class TestNotes:

    def test_note_attached_during_review(self):
        review = submit_for_review(_counted())
        review = attach_note(review, "a", "  three pieces missing  ")

        assert isinstance(review, Review)
        assert review.lines[0].notes == "three pieces missing"
        assert missing_notes(review) == ("b",)
        assert review.summary.items[0].notes == "three pieces missing"

    def test_blank_note_clears(self):
        session = attach_note(_session(), "a", "x")
        session = attach_note(session, "a", "   ")
        assert session.lines[0].notes is None

    def test_reconciled_lines_need_no_note(self):
        review = submit_for_review(_counted(a=10, b=5))
        assert missing_notes(review) == ()

"""
Tests for now/next computation.
"""
from tests.conftest import MINUTE_MS, T0, make_program
from tuner_guide.services.now_next import now_next, sort_programs


class TestNowNext:
    def test_empty_list(self):
        pair = now_next([], T0)

        assert pair.now is None
        assert pair.next is None
        assert pair.is_empty

    def test_single_current_program_has_no_next(self):
        program = make_program(1, T0)

        pair = now_next([program], T0 + 10 * MINUTE_MS)

        assert pair.now == program
        assert pair.next is None

    def test_back_to_back_programs(self):
        a = make_program(1, T0)
        b = make_program(2, T0 + 30 * MINUTE_MS)

        pair = now_next([b, a], T0 + 5 * MINUTE_MS)

        assert pair.now == a
        assert pair.next == b

    def test_end_is_exclusive(self):
        a = make_program(1, T0)
        b = make_program(2, T0 + 30 * MINUTE_MS)

        pair = now_next([a, b], T0 + 30 * MINUTE_MS)

        assert pair.now == b
        assert pair.next is None

    def test_gap_before_next_program(self):
        upcoming = make_program(1, T0 + 10 * MINUTE_MS)
        later = make_program(2, T0 + 60 * MINUTE_MS)

        pair = now_next([later, upcoming], T0)

        assert pair.now is None
        assert pair.next == upcoming

    def test_next_skips_overlapping_programs(self):
        current = make_program(1, T0, minutes=60)
        overlapping = make_program(2, T0 + 30 * MINUTE_MS)
        after = make_program(3, T0 + 60 * MINUTE_MS)

        pair = now_next([overlapping, after, current], T0 + 5 * MINUTE_MS)

        assert pair.now == current
        assert pair.next == after

    def test_program_starting_at_reference_is_not_next(self):
        past = make_program(1, T0 - 60 * MINUTE_MS)
        starting = make_program(2, T0 + MINUTE_MS)

        pair = now_next([past, starting], T0)

        assert pair.now is None
        assert pair.next == starting

    def test_deterministic(self):
        programs = [
            make_program(3, T0 + 60 * MINUTE_MS),
            make_program(1, T0),
            make_program(2, T0 + 30 * MINUTE_MS),
        ]
        reference = T0 + 45 * MINUTE_MS

        assert now_next(programs, reference) == now_next(programs, reference)


class TestSortPrograms:
    def test_stable_for_equal_start_times(self):
        first = make_program(10, T0, name="First")
        second = make_program(20, T0, name="Second")
        earlier = make_program(30, T0 - MINUTE_MS)

        ordered = sort_programs([first, second, earlier])

        assert [p.id for p in ordered] == [30, 10, 20]

    def test_tie_resolves_now_to_first_fetched(self):
        first = make_program(10, T0, name="First")
        second = make_program(20, T0, name="Second")

        assert now_next([first, second], T0).now == first
        assert now_next([second, first], T0).now == second

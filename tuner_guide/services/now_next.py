"""
Now/Next Computation

Pure functions deriving the currently airing and following program from an
unordered program list.
"""
from collections.abc import Iterable

from tuner_guide.models import Program
from tuner_guide.services.fetch_types import NowNextPair


def sort_programs(programs: Iterable[Program]) -> list[Program]:
    """
    Sort programs ascending by start time.

    The sort is stable, so programs sharing a start time keep their fetch order.
    """
    return sorted(programs, key=lambda program: program.start_at)


def now_next(programs: Iterable[Program], reference_time: int) -> NowNextPair:
    """
    Compute the now/next pair for a program list at a reference time

    Args:
        programs: Programs of one service, in any order
        reference_time: Epoch milliseconds to evaluate against

    Returns:
        NowNextPair; both sides are None for an empty list
    """
    ordered = sort_programs(programs)
    current = next((program for program in ordered if program.is_current(reference_time)), None)

    if current is not None:
        following = next(
            (program for program in ordered if program.start_at >= current.end_at),
            None,
        )
    else:
        following = next(
            (program for program in ordered if program.start_at > reference_time),
            None,
        )

    return NowNextPair(now=current, next=following)

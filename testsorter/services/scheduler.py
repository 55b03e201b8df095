from typing import Dict, Iterable, List, Optional, Tuple

from testsorter.models import Interval
from testsorter.utils.interval_tree import IntervalTree


Placement = Tuple[Interval, Optional[Interval]]


class Scheduler:
    """Capacity-bounded timeline for one machine or one shared resource.

    Intervals are keyed by the index of the test that owns them. At any instant
    at most ``capacity`` intervals may cover it: machines use ``capacity=1``,
    resources may allow several concurrent tests.

    A test that needs a machine *and* a resource is placed through the machine
    timeline with the resource timeline passed as ``dependent``: ``can_fit``
    looks for a window free on both and ``add`` commits both halves together.
    """

    __slots__ = ("name", "capacity", "_intervals", "_tree")

    def __init__(self, capacity: int, name: str):
        if capacity < 1:
            raise ValueError(f"Scheduler {name!r} needs a capacity >= 1, got {capacity}")
        self.name = name
        self.capacity = capacity
        self._intervals: Dict[int, Interval] = {}
        self._tree = IntervalTree()

    def __len__(self) -> int:
        return len(self._intervals)

    def __contains__(self, test_index: int) -> bool:
        return test_index in self._intervals

    def __repr__(self) -> str:
        return f"Scheduler(name={self.name!r}, capacity={self.capacity}, intervals={len(self)})"

    # MARK: - Queries

    def can_fit(
        self, duration: int, dependent: Optional["Scheduler"] = None
    ) -> Optional[Placement]:
        """Find the earliest window of ``duration`` free here (and on ``dependent``).

        Candidate starts are ``0`` and every interval end on either timeline,
        scanned in ascending order. The latest end is always free, so the scan
        terminates with a placement.
        """

        if duration <= 0:
            raise ValueError(f"Duration must be positive, got {duration}")

        for start in self._candidate_starts(dependent):
            interval = Interval.of(start, duration)
            if not self._has_room(interval):
                continue
            if dependent is None:
                return interval, None
            if dependent._has_room(interval):
                return interval, Interval(interval.start, interval.end)
        return None

    def fits_at(self, interval: Interval, dependent: Optional["Scheduler"] = None) -> bool:
        """Whether ``interval`` can be committed as-is here and on ``dependent``."""

        if interval.start < 0 or interval.end <= interval.start:
            return False
        if not self._has_room(interval):
            return False
        return dependent is None or dependent._has_room(interval)

    def interval_of(self, test_index: int) -> Optional[Interval]:
        return self._intervals.get(test_index)

    def intervals(self) -> List[Tuple[int, Interval]]:
        """Return ``(test_index, interval)`` pairs ordered by start time."""

        return [(key, Interval(start, end)) for start, end, key in self._tree.iter()]

    def peak_load(self) -> int:
        """Highest number of intervals covering any single instant."""

        return _peak(
            (interval.start, interval.end) for interval in self._intervals.values()
        )

    # MARK: - Mutations

    def add(
        self,
        duration: int,
        test_index: int,
        interval: Interval,
        dependent: Optional["Scheduler"] = None,
        dependent_interval: Optional[Interval] = None,
    ) -> None:
        """Commit ``interval`` for ``test_index`` (and ``dependent_interval`` on ``dependent``).

        Feasibility must have been established with :meth:`can_fit` or
        :meth:`fits_at`. Both halves are validated before either is inserted.
        """

        if interval.duration != duration:
            raise ValueError(
                f"Interval {interval} does not match duration {duration} of test {test_index}"
            )
        if test_index in self._intervals:
            raise ValueError(f"Test {test_index} is already booked on {self.name}")
        if dependent is not None:
            if dependent_interval is None:
                raise ValueError(
                    f"Test {test_index} is bound to {dependent.name} but no interval was given for it"
                )
            if dependent_interval != interval:
                raise ValueError(
                    f"Dependent interval {dependent_interval} must equal machine interval {interval}"
                )
            if test_index in dependent._intervals:
                raise ValueError(f"Test {test_index} is already booked on {dependent.name}")
            dependent._book(test_index, dependent_interval)
        self._book(test_index, interval)

    def remove(self, test_index: int) -> bool:
        interval = self._intervals.pop(test_index, None)
        if interval is None:
            return False
        self._tree.remove(interval.start, interval.end, test_index)
        return True

    def remove_after(self, threshold: int) -> List[int]:
        """Drop every interval starting at or after ``threshold``; return their test indices."""

        removed = [
            test_index
            for test_index, interval in self._intervals.items()
            if interval.start >= threshold
        ]
        for test_index in removed:
            self.remove(test_index)
        return removed

    def clone_into(self, other: "Scheduler") -> None:
        """Make ``other`` an independent duplicate of this timeline."""

        other.name = self.name
        other.capacity = self.capacity
        # Interval objects are immutable, sharing them is safe
        other._intervals = dict(self._intervals)
        other._tree = self._tree.copy()

    # MARK: - Helpers

    def _book(self, test_index: int, interval: Interval) -> None:
        self._intervals[test_index] = interval
        self._tree.insert(interval.start, interval.end, test_index)

    def _candidate_starts(self, dependent: Optional["Scheduler"]) -> List[int]:
        starts = {0}
        starts.update(interval.end for interval in self._intervals.values())
        if dependent is not None:
            starts.update(interval.end for interval in dependent._intervals.values())
        return sorted(starts)

    def _has_room(self, interval: Interval) -> bool:
        if self.capacity == 1:
            return not self._tree.overlaps(interval.start, interval.end)
        overlapping = self._tree.overlapping(interval.start, interval.end)
        if len(overlapping) < self.capacity:
            return True
        clipped = (
            (max(start, interval.start), min(end, interval.end))
            for start, end, _ in overlapping
        )
        return _peak(clipped) < self.capacity


def _peak(spans: Iterable[Tuple[int, int]]) -> int:
    """Maximum number of half-open spans covering one instant."""

    events: List[Tuple[int, int]] = []
    for start, end in spans:
        events.append((start, 1))
        events.append((end, -1))
    # Ends sort before starts at the same instant: [a, b) and [b, c) do not overlap
    events.sort()
    load = peak = 0
    for _, delta in events:
        load += delta
        if load > peak:
            peak = load
    return peak

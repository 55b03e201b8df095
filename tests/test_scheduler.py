import pytest

from testsorter.models import Interval
from testsorter.services.scheduler import Scheduler


def _book(scheduler, test_index, start, duration, dependent=None):
    interval = Interval.of(start, duration)
    scheduler.add(
        duration,
        test_index,
        interval,
        dependent,
        interval if dependent is not None else None,
    )


def test_empty_timeline_fits_at_zero():
    machine = Scheduler(1, "M1")
    interval, dependent_interval = machine.can_fit(3)

    assert interval == Interval(0, 3)
    assert dependent_interval is None


def test_machine_places_after_existing_interval():
    machine = Scheduler(1, "M1")
    _book(machine, 0, 0, 4)

    interval, _ = machine.can_fit(2)

    assert interval == Interval(4, 6)


def test_can_fit_uses_gaps_between_intervals():
    machine = Scheduler(1, "M1")
    _book(machine, 0, 0, 2)
    _book(machine, 1, 5, 3)

    assert machine.can_fit(3)[0] == Interval(2, 5)
    assert machine.can_fit(4)[0] == Interval(8, 12)


def test_can_fit_does_not_mutate():
    machine = Scheduler(1, "M1")
    _book(machine, 0, 0, 2)
    machine.can_fit(5)

    assert len(machine) == 1
    assert machine.intervals() == [(0, Interval(0, 2))]


def test_resource_capacity_allows_concurrent_tests():
    resource = Scheduler(2, "R1")
    _book(resource, 0, 0, 5)
    _book(resource, 1, 0, 5)

    assert resource.can_fit(1)[0] == Interval(5, 6)
    assert resource.peak_load() == 2


def test_capacity_counts_overlap_per_instant():
    resource = Scheduler(2, "R1")
    _book(resource, 0, 0, 3)
    _book(resource, 1, 3, 3)
    _book(resource, 2, 1, 4)

    # [0, 6) never has more than two tests at once, but every instant in [1, 5) does
    assert resource.peak_load() == 2
    assert resource.can_fit(1)[0] == Interval(0, 1)
    assert resource.can_fit(2)[0] == Interval(5, 7)


def test_paired_can_fit_requires_both_timelines():
    machine = Scheduler(1, "M1")
    resource = Scheduler(1, "R1")
    _book(resource, 9, 0, 4)

    interval, dependent_interval = machine.can_fit(2, resource)

    assert interval == Interval(4, 6)
    assert dependent_interval == interval


def test_paired_add_commits_both_timelines():
    machine = Scheduler(1, "M1")
    resource = Scheduler(1, "R1")
    interval, dependent_interval = machine.can_fit(3, resource)
    machine.add(3, 0, interval, resource, dependent_interval)

    assert machine.interval_of(0) == Interval(0, 3)
    assert resource.interval_of(0) == Interval(0, 3)


def test_add_rejects_dependent_without_interval():
    machine = Scheduler(1, "M1")
    resource = Scheduler(1, "R1")

    with pytest.raises(ValueError):
        machine.add(3, 0, Interval(0, 3), resource, None)

    assert 0 not in machine
    assert 0 not in resource


def test_add_rejects_mismatched_dependent_interval():
    machine = Scheduler(1, "M1")
    resource = Scheduler(1, "R1")

    with pytest.raises(ValueError):
        machine.add(3, 0, Interval(0, 3), resource, Interval(1, 4))

    assert len(machine) == 0
    assert len(resource) == 0


def test_add_rejects_wrong_duration_and_duplicates():
    machine = Scheduler(1, "M1")
    with pytest.raises(ValueError):
        machine.add(2, 0, Interval(0, 3))

    _book(machine, 0, 0, 3)
    with pytest.raises(ValueError):
        _book(machine, 0, 3, 3)


def test_remove_reports_whether_interval_existed():
    machine = Scheduler(1, "M1")
    _book(machine, 0, 0, 3)

    assert machine.remove(0)
    assert not machine.remove(0)
    assert machine.can_fit(3)[0] == Interval(0, 3)


def test_remove_after_truncates_timeline():
    machine = Scheduler(1, "M1")
    _book(machine, 0, 0, 2)
    _book(machine, 1, 2, 2)
    _book(machine, 2, 4, 2)

    removed = machine.remove_after(2)

    assert sorted(removed) == [1, 2]
    assert machine.intervals() == [(0, Interval(0, 2))]


def test_fits_at_checks_exact_window():
    machine = Scheduler(1, "M1")
    resource = Scheduler(1, "R1")
    _book(machine, 0, 0, 2)
    _book(resource, 1, 5, 2)

    assert not machine.fits_at(Interval(1, 3))
    assert machine.fits_at(Interval(2, 4), resource)
    assert not machine.fits_at(Interval(4, 6), resource)
    assert not machine.fits_at(Interval(-1, 1))


def test_clone_into_is_deep():
    source = Scheduler(2, "R1")
    _book(source, 0, 0, 3)
    target = Scheduler(1, "other")
    _book(target, 5, 10, 1)

    source.clone_into(target)
    _book(target, 1, 0, 3)

    assert target.name == "R1"
    assert target.capacity == 2
    assert sorted(index for index, _ in target.intervals()) == [0, 1]
    assert [index for index, _ in source.intervals()] == [0]


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        Scheduler(0, "R0")

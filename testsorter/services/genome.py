from __future__ import annotations

import random
import sys
from typing import List, Optional, Sequence

from testsorter.models import Instance, Interval, Solution

from .scheduler import Scheduler


UNSET_FITNESS = sys.maxsize  # Larger than any achievable makespan
UNASSIGNED = -1


class Genome:
    """
    One complete candidate schedule over an :class:`Instance`.

    Holds, per test, the assigned machine, the assigned resource (if the test
    needs one) and its start/end times, together with one :class:`Scheduler`
    per machine and per resource. Every operator below keeps the timelines
    feasible: tests are only ever committed after a successful feasibility
    query.

    Fitness is the makespan (last end minus first start), lower is better.
    """

    def __init__(self, instance: Instance):
        self.instance = instance
        self.size = instance.test_count
        self.fitness = UNSET_FITNESS
        self.machines: List[Optional[str]] = [None] * self.size
        self.resources: List[Optional[str]] = [None] * self.size
        self.starts: List[int] = [UNASSIGNED] * self.size
        self.ends: List[int] = [UNASSIGNED] * self.size
        self.machine_schedulers: List[Scheduler] = [
            Scheduler(1, machine) for machine in instance.machines
        ]
        self.resource_schedulers: List[Scheduler] = [
            Scheduler(capacity, resource)
            for resource, capacity in zip(instance.resources, instance.resource_capacities)
        ]
        self._machine_by_name = {s.name: s for s in self.machine_schedulers}
        self._resource_by_name = {s.name: s for s in self.resource_schedulers}

    def __repr__(self) -> str:
        fitness = "unset" if self.fitness == UNSET_FITNESS else self.fitness
        return f"Genome(tests={self.size}, fitness={fitness})"

    # MARK: - Construction

    @classmethod
    def random(cls, instance: Instance, rng: random.Random) -> "Genome":
        """Place every test with :meth:`find_schedule` in a random order."""

        if instance.test_count == 0:
            raise ValueError("Cannot build a genome for an instance without tests")
        genome = cls(instance)
        order = list(range(genome.size))
        rng.shuffle(order)
        for index in order:
            genome.find_schedule(index)
        genome.evaluate()
        return genome

    @classmethod
    def from_assignment(
        cls,
        instance: Instance,
        starts: Sequence[int],
        ends: Sequence[int],
        machines: Sequence[str],
        resources: Optional[Sequence[Optional[str]]] = None,
    ) -> "Genome":
        """Build a genome from externally supplied per-test arrays.

        When ``resources`` is omitted, every resource-bound test is attached to
        the first eligible resource with room for its window. Any mismatch or
        infeasible placement raises ``ValueError``; no genome is returned.
        """

        size = instance.test_count
        if size == 0:
            raise ValueError("Cannot build a genome for an instance without tests")
        lengths = {len(starts), len(ends), len(machines)}
        if resources is not None:
            lengths.add(len(resources))
        if lengths != {size}:
            raise ValueError(
                f"The arrays must be of the same size as the instance ({size} tests)"
            )

        genome = cls(instance)
        for index, test in enumerate(instance.tests):
            interval = Interval(starts[index], ends[index])
            if interval.duration != test.duration:
                raise ValueError(
                    f"Test {index} spans {interval.duration} time units, expected {test.duration}"
                )
            machine = machines[index]
            if machine not in genome._machine_by_name or not test.can_run_on(machine):
                raise ValueError(f"Test {index} cannot run on machine {machine!r}")
            wanted = None if resources is None else resources[index]
            if not genome._place_exact(index, machine, interval, wanted):
                raise ValueError(
                    f"Test {index} does not fit at {interval} on {machine!r}"
                )
        genome.evaluate()
        return genome

    # MARK: - Scheduling primitives

    def find_schedule(self, index: int) -> None:
        """Commit test ``index`` at the earliest start over all eligible machine/resource pairs."""

        test = self.instance.tests[index]
        best = None  # (interval, machine scheduler, resource scheduler)

        for machine_scheduler in self.machine_schedulers:
            if not test.can_run_on(machine_scheduler.name):
                continue
            if not test.needs_resource:
                placement = machine_scheduler.can_fit(test.duration)
                if placement is None:
                    continue
                if best is None or placement[0].start < best[0].start:
                    best = (placement[0], machine_scheduler, None)
                continue
            for resource_scheduler in self.resource_schedulers:
                if resource_scheduler.name not in test.resources:
                    continue
                placement = machine_scheduler.can_fit(test.duration, resource_scheduler)
                if placement is None:
                    continue
                if best is None or placement[0].start < best[0].start:
                    best = (placement[0], machine_scheduler, resource_scheduler)

        if best is None:
            raise RuntimeError(
                f"Test {index} has no eligible machine/resource combination"
            )

        interval, machine_scheduler, resource_scheduler = best
        machine_scheduler.add(
            test.duration,
            index,
            interval,
            resource_scheduler,
            interval if resource_scheduler is not None else None,
        )
        self._assign(index, machine_scheduler.name, resource_scheduler, interval)

    def reschedule(self, index: int) -> None:
        """Vacate test ``index`` and place it again at its earliest feasible slot."""

        self._vacate(index)
        self.find_schedule(index)

    def adopt(
        self, index: int, machine: str, start: int, resource: Optional[str] = None
    ) -> bool:
        """Move test ``index`` to an exact placement, or its earliest slot if that one is taken.

        Returns ``True`` when the requested placement was kept.
        """

        self._vacate(index)
        test = self.instance.tests[index]
        if (
            machine in self._machine_by_name
            and test.can_run_on(machine)
            and start >= 0
            and self._place_exact(index, machine, Interval.of(start, test.duration), resource)
        ):
            return True
        self.find_schedule(index)
        return False

    def take_segment(self, donor: "Genome", first: int, last: int) -> int:
        """Re-place tests ``first..last`` the way ``donor`` has them.

        The whole range is vacated first, then re-inserted in the donor's start
        order through :meth:`adopt`. Returns how many donor placements were
        kept exactly.
        """

        if donor.size != self.size:
            raise ValueError("Donor genome belongs to a different instance")
        if first > last:
            first, last = last, first
        segment = range(first, last + 1)
        for index in segment:
            self._vacate(index)

        kept = 0
        for index in sorted(segment, key=lambda i: (donor.starts[i], i)):
            machine = donor.machines[index]
            if machine is None:
                self.find_schedule(index)
                continue
            if self.adopt(index, machine, donor.starts[index], donor.resources[index]):
                kept += 1
        return kept

    def swap_places(self, first: int, second: int) -> bool:
        """Re-place ``second`` then ``first``; report whether ``first`` moved.

        The operation is not an involution: swapping back does not have to
        restore the previous assignment, since earliest-fit placement depends
        on whatever else is on the timelines.
        """

        previous_machine = self.machines[first]
        previous_start = self.starts[first]

        self._vacate(first)
        if second != first:
            self._vacate(second)
            self.find_schedule(second)
        self.find_schedule(first)

        return self.machines[first] != previous_machine or self.starts[first] != previous_start

    def scramble_genes(self, first: int, last: int, rng: random.Random) -> None:
        """Re-place tests ``first..last`` (inclusive) in a uniformly random order."""

        if first > last:
            first, last = last, first
        for index in range(first, last + 1):
            self._vacate(index)
        order = list(range(first, last + 1))
        rng.shuffle(order)
        for index in order:
            self.find_schedule(index)

    def randomize(self, rng: random.Random) -> None:
        """Cut the schedule at a random time and rebuild everything after it."""

        if self.fitness == UNSET_FITNESS:
            self.evaluate()
        cut = rng.randrange(self.fitness) if self.fitness > 0 else 0

        for scheduler in self.machine_schedulers:
            scheduler.remove_after(cut)
        for scheduler in self.resource_schedulers:
            scheduler.remove_after(cut)
        for index in range(self.size):
            if self.starts[index] >= cut:
                self._mark_unassigned(index)

        for index in range(self.size):
            if self.starts[index] == UNASSIGNED:
                self.find_schedule(index)

    # MARK: - Fitness

    def first_start(self) -> int:
        assigned = [start for start in self.starts if start != UNASSIGNED]
        if not assigned:
            raise ValueError("Genome has no scheduled tests")
        return min(assigned)

    def last_end(self) -> int:
        assigned = [end for end in self.ends if end != UNASSIGNED]
        if not assigned:
            raise ValueError("Genome has no scheduled tests")
        return max(assigned)

    def evaluate(self) -> int:
        """Recompute and store the makespan."""

        self.fitness = self.last_end() - self.first_start()
        return self.fitness

    def is_feasible(self) -> bool:
        """Re-check capacities and the machine/resource coupling of every test."""

        for scheduler in self.machine_schedulers + self.resource_schedulers:
            if scheduler.peak_load() > scheduler.capacity:
                return False
        for index, test in enumerate(self.instance.tests):
            machine = self.machines[index]
            if machine is None:
                continue
            interval = Interval(self.starts[index], self.ends[index])
            if interval.duration != test.duration or not test.can_run_on(machine):
                return False
            if self._machine_by_name[machine].interval_of(index) != interval:
                return False
            resource = self.resources[index]
            if test.needs_resource:
                if resource not in test.resources:
                    return False
                if self._resource_by_name[resource].interval_of(index) != interval:
                    return False
            elif resource is not None:
                return False
        return True

    # MARK: - Copying and export

    def clone_into(self, other: "Genome") -> None:
        """Overwrite ``other`` with a deep copy of this genome."""

        if other.instance is not self.instance and other.instance != self.instance:
            raise ValueError("Cannot clone a genome into one built for another instance")
        other.machines[:] = self.machines
        other.resources[:] = self.resources
        other.starts[:] = self.starts
        other.ends[:] = self.ends
        for source, target in zip(self.machine_schedulers, other.machine_schedulers):
            source.clone_into(target)
        for source, target in zip(self.resource_schedulers, other.resource_schedulers):
            source.clone_into(target)
        other.fitness = self.fitness

    def copy(self) -> "Genome":
        clone = Genome(self.instance)
        self.clone_into(clone)
        return clone

    def to_solution(self) -> Solution:
        if self.size == 0:
            raise ValueError("Cannot export a schedule without tests")
        if any(machine is None for machine in self.machines):
            raise ValueError("Cannot export a genome with unscheduled tests")
        return Solution(
            test_indices=tuple(test.index for test in self.instance.tests),
            machines=tuple(self.machines),
            start_times=tuple(self.starts),
            resources=tuple(self.resources),
            makespan=self.evaluate(),
        )

    # MARK: - Helpers

    def _place_exact(
        self, index: int, machine: str, interval: Interval, resource: Optional[str]
    ) -> bool:
        test = self.instance.tests[index]
        machine_scheduler = self._machine_by_name[machine]

        if not test.needs_resource:
            if resource is not None or not machine_scheduler.fits_at(interval):
                return False
            machine_scheduler.add(test.duration, index, interval)
            self._assign(index, machine, None, interval)
            return True

        if resource is not None:
            candidates = [resource] if resource in test.resources else []
        else:
            candidates = [s.name for s in self.resource_schedulers if s.name in test.resources]
        for name in candidates:
            resource_scheduler = self._resource_by_name.get(name)
            if resource_scheduler is None or not machine_scheduler.fits_at(interval, resource_scheduler):
                continue
            machine_scheduler.add(test.duration, index, interval, resource_scheduler, interval)
            self._assign(index, machine, resource_scheduler, interval)
            return True
        return False

    def _assign(
        self, index: int, machine: str, resource_scheduler: Optional[Scheduler], interval: Interval
    ) -> None:
        self.machines[index] = machine
        self.resources[index] = resource_scheduler.name if resource_scheduler is not None else None
        self.starts[index] = interval.start
        self.ends[index] = interval.end

    def _vacate(self, index: int) -> None:
        machine = self.machines[index]
        if machine is not None:
            self._machine_by_name[machine].remove(index)
        resource = self.resources[index]
        if resource is not None:
            self._resource_by_name[resource].remove(index)
        self._mark_unassigned(index)

    def _mark_unassigned(self, index: int) -> None:
        self.machines[index] = None
        self.resources[index] = None
        self.starts[index] = UNASSIGNED
        self.ends[index] = UNASSIGNED

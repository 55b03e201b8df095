from dataclasses import dataclass, field
from typing import Optional

# MARK: - Models


@dataclass(frozen=True)
class Test:
    index: int
    duration: int
    machines: frozenset[str] = field(default_factory=frozenset)  # empty -> any machine
    resources: frozenset[str] = field(default_factory=frozenset)  # empty -> no resource

    @property
    def needs_resource(self) -> bool:
        return len(self.resources) != 0

    def can_run_on(self, machine: str) -> bool:
        return not self.machines or machine in self.machines


@dataclass(frozen=True)
class Instance:
    tests: tuple[Test, ...]
    machines: tuple[str, ...]
    resources: tuple[str, ...] = ()
    resource_capacities: tuple[int, ...] = ()  # parallel to ``resources``

    @property
    def test_count(self) -> int:
        return len(self.tests)

    def capacity_of(self, resource: str) -> int:
        return self.resource_capacities[self.resources.index(resource)]


@dataclass(frozen=True, order=True)
class Interval:
    start: int
    end: int

    @classmethod
    def of(cls, start: int, duration: int) -> "Interval":
        return cls(start, start + duration)

    @property
    def duration(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class Solution:
    test_indices: tuple[int, ...]
    machines: tuple[str, ...]
    start_times: tuple[int, ...]
    resources: tuple[Optional[str], ...] = ()
    makespan: Optional[int] = None

    def __len__(self) -> int:
        return len(self.test_indices)


# MARK: - Validation


def validate_instance(instance: Instance) -> None:
    """Reject instances the optimizer cannot place.

    The optimizer itself assumes every test is placeable on an unbounded
    horizon; this is the check input collaborators run before handing an
    instance over.
    """

    if not instance.machines:
        raise ValueError("Instance must declare at least one machine")
    if len(set(instance.machines)) != len(instance.machines):
        raise ValueError("Machine names must be unique")
    if len(set(instance.resources)) != len(instance.resources):
        raise ValueError("Resource names must be unique")
    if len(instance.resources) != len(instance.resource_capacities):
        raise ValueError(
            f"Got {len(instance.resource_capacities)} capacities for {len(instance.resources)} resources"
        )
    for resource, capacity in zip(instance.resources, instance.resource_capacities):
        if capacity < 1:
            raise ValueError(f"Resource {resource!r} has capacity {capacity}, expected >= 1")

    known_machines = set(instance.machines)
    known_resources = set(instance.resources)
    for position, test in enumerate(instance.tests):
        if test.index != position:
            raise ValueError(f"Test at position {position} has index {test.index}")
        if test.duration <= 0:
            raise ValueError(f"Test {test.index} has non-positive duration {test.duration}")
        unknown_machines = test.machines - known_machines
        if unknown_machines:
            raise ValueError(
                f"Test {test.index} references unknown machines {sorted(unknown_machines)}"
            )
        unknown_resources = test.resources - known_resources
        if unknown_resources:
            raise ValueError(
                f"Test {test.index} references unknown resources {sorted(unknown_resources)}"
            )


__all__ = [
    "Test",
    "Instance",
    "Interval",
    "Solution",
    "validate_instance",
]

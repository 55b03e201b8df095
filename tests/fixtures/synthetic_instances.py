"""Synthetic instance generators for exercising the optimizer."""

from __future__ import annotations

import random
from typing import Iterable, List, Sequence

from testsorter.models import Instance, Test


def single_machine_instance(durations: Sequence[int], machine: str = "M1") -> Instance:
    """Tests with the given durations, all on one machine, no resources."""

    tests = tuple(Test(index=i, duration=d) for i, d in enumerate(durations))
    return Instance(tests=tests, machines=(machine,))


def shared_resource_instance(
    durations: Sequence[int] = (4, 4),
    machines: Iterable[str] = ("M1", "M2"),
    resource: str = "R1",
    capacity: int = 1,
) -> Instance:
    """Every test may use any machine but needs the single shared resource."""

    machine_names = tuple(machines)
    tests = tuple(
        Test(
            index=i,
            duration=d,
            machines=frozenset(machine_names),
            resources=frozenset({resource}),
        )
        for i, d in enumerate(durations)
    )
    return Instance(
        tests=tests,
        machines=machine_names,
        resources=(resource,),
        resource_capacities=(capacity,),
    )


def generate_synthetic_instance(
    test_count: int = 30,
    machine_count: int = 4,
    resource_count: int = 2,
    *,
    max_duration: int = 9,
    resource_ratio: float = 0.4,
    restricted_ratio: float = 0.3,
    seed: int = 7,
) -> Instance:
    """Create a deterministic mixed instance.

    Roughly ``resource_ratio`` of the tests need one of one or two resources,
    ``restricted_ratio`` are limited to a subset of the machines. Resource
    capacities alternate between 1 and 2.
    """

    rng = random.Random(seed)
    machines = tuple(f"M{i + 1}" for i in range(machine_count))
    resources = tuple(f"R{i + 1}" for i in range(resource_count))
    capacities = tuple(1 + (i % 2) for i in range(resource_count))

    tests: List[Test] = []
    for index in range(test_count):
        eligible_machines: frozenset[str] = frozenset()
        if machine_count > 1 and rng.random() < restricted_ratio:
            eligible_machines = frozenset(rng.sample(machines, rng.randint(1, machine_count - 1)))
        eligible_resources: frozenset[str] = frozenset()
        if resources and rng.random() < resource_ratio:
            eligible_resources = frozenset(
                rng.sample(resources, rng.randint(1, min(2, resource_count)))
            )
        tests.append(
            Test(
                index=index,
                duration=rng.randint(1, max_duration),
                machines=eligible_machines,
                resources=eligible_resources,
            )
        )

    return Instance(
        tests=tuple(tests),
        machines=machines,
        resources=resources,
        resource_capacities=capacities,
    )

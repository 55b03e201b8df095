"""Evolutionary scheduler assigning tests to machines and shared resources."""

from testsorter.models import Instance, Interval, Solution, Test, validate_instance
from testsorter.services import (
    CancellationToken,
    GeneticAlgorithmConfig,
    GeneticSchedulerOptimizer,
    Genome,
    Scheduler,
    solve,
)

__version__ = "0.1.0"

__all__ = [
    "Instance",
    "Interval",
    "Solution",
    "Test",
    "validate_instance",
    "CancellationToken",
    "GeneticAlgorithmConfig",
    "GeneticSchedulerOptimizer",
    "Genome",
    "Scheduler",
    "solve",
]

from .scheduler import Scheduler
from .genome import Genome, UNASSIGNED, UNSET_FITNESS
from .cancellation import CancellationToken, DeadlineTimer
from .genetic_optimizer import (
    GeneticSchedulerOptimizer,
    GeneticAlgorithmConfig,
    optimize_schedule,
    solve,
)

__all__ = [
    "Scheduler",
    "Genome",
    "UNASSIGNED",
    "UNSET_FITNESS",
    "CancellationToken",
    "DeadlineTimer",
    "GeneticSchedulerOptimizer",
    "GeneticAlgorithmConfig",
    "optimize_schedule",
    "solve",
]

from collections import deque
from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import (
    Callable,
    Deque,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    TYPE_CHECKING,
)
import logging
import random

from testsorter.common.settings import get_default_seed, parallel_tournaments_enabled
from testsorter.models import Instance, Solution, validate_instance
from testsorter.services.cancellation import CancellationToken, DeadlineTimer
from testsorter.services.genome import Genome

if TYPE_CHECKING:
    from testsorter.utils.genetic_algorithm_logger import GeneticAlgorithmLogger


_logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class GeneticAlgorithmConfig:
    """Configuration for the genetic algorithm."""

    population_size: int = 100
    tournament_size: int = 3
    mutation_probability: float = 0.01  # Per-gene chance of rescheduling a test
    swap_probability: float = 0.05  # Per-child chance of one swap_places
    scramble_probability: float = 0.05  # Per-child chance of scrambling an index window
    randomize_probability: float = 0.02  # Per-child chance of a cut-and-rebuild
    stagnation_generations: int = 10000  # Stop after this many generations without improvement
    tournaments_per_generation: int = 1
    parallel_tournaments: bool = field(default_factory=parallel_tournaments_enabled)
    max_workers: Optional[int] = None  # None = let the executor decide
    history_size: int = 1000  # Most recent generations kept in generation_history
    seed: Optional[int] = field(default_factory=get_default_seed)

    def __post_init__(self):
        if self.tournament_size < 3:
            raise ValueError(
                f"Tournament size must be at least 3, got {self.tournament_size}"
            )
        if self.population_size < self.tournament_size:
            raise ValueError(
                f"Population size {self.population_size} is smaller than the tournament size {self.tournament_size}"
            )
        for name in (
            "mutation_probability",
            "swap_probability",
            "scramble_probability",
            "randomize_probability",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.stagnation_generations < 1:
            raise ValueError("stagnation_generations must be at least 1")
        if self.tournaments_per_generation < 1:
            raise ValueError("tournaments_per_generation must be at least 1")
        if (
            self.parallel_tournaments
            and self.tournaments_per_generation * self.tournament_size > self.population_size
        ):
            raise ValueError(
                "Parallel tournaments need a disjoint triple per tournament: "
                f"{self.tournaments_per_generation} x {self.tournament_size} exceeds "
                f"population size {self.population_size}"
            )
        if self.history_size < 1:
            raise ValueError("history_size must be at least 1")


class GeneticSchedulerOptimizer:
    """
    Genetic Algorithm optimizer for test-to-machine schedules.

    Evolves a population of feasible :class:`Genome` instances:
    1. Seeding the population with randomly ordered earliest-fit schedules
    2. Running tournaments of three: the best two are recombined into the
       slot of the worst, which is then mutated and re-evaluated
    3. Keeping a private copy of the best genome seen, so the reported best
       makespan never gets worse

    The run ends after ``stagnation_generations`` generations without
    improvement, or as soon as the cancellation token is observed at the
    start of a generation.
    """

    def __init__(self, config: Optional[GeneticAlgorithmConfig] = None):
        self.config = config or GeneticAlgorithmConfig()
        self.instance: Optional[Instance] = None
        self.population: List[Genome] = []
        self.best: Optional[Genome] = None
        self.generations_run = 0
        self.generation_history: Deque[Dict] = deque(maxlen=self.config.history_size)

    def optimize(
        self,
        instance: Instance,
        cancellation: Optional[CancellationToken] = None,
        logger: Optional["GeneticAlgorithmLogger"] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Genome:
        """
        Search for a schedule of ``instance`` with minimal makespan.

        Args:
            instance: Problem to schedule, assumed valid
            cancellation: Optional token polled once per generation
            logger: Optional logger for evolution logging
            progress_callback: Optional hook called with (generation, makespan)
                whenever a generation improves the best schedule

        Returns:
            A copy of the best genome found
        """
        if instance.test_count == 0:
            raise ValueError("Cannot optimize an instance without tests")

        self.instance = instance
        self.generation_history = deque(maxlen=self.config.history_size)
        self.generations_run = 0
        rng = random.Random(self.config.seed)

        if logger:
            logger.log_optimization_start(instance.test_count, self.config)

        # INIT
        self.population = self._initialize_population(instance, rng)
        best_index = min(
            range(len(self.population)), key=lambda i: self.population[i].fitness
        )
        self.best = self.population[best_index].copy()
        initial_fitness = self.best.fitness
        if logger:
            logger.log_initial_population(initial_fitness, self._average_fitness())

        # EVOLVE
        stagnation_counter = 0
        generation = 0
        executor_context = (
            ThreadPoolExecutor(max_workers=self.config.max_workers)
            if self.config.parallel_tournaments
            else nullcontext()
        )
        with executor_context as executor:
            while stagnation_counter < self.config.stagnation_generations:
                if cancellation is not None and cancellation.is_cancelled():
                    if logger:
                        logger.log_cancellation_stop(generation)
                    break

                generation += 1
                old_fitness = self.best.fitness
                child_best: Optional[int] = None
                for child in self._run_generation(rng, executor):
                    if child_best is None or child.fitness < child_best:
                        child_best = child.fitness
                    if child.fitness < self.best.fitness:
                        child.clone_into(self.best)

                found_new_best = self.best.fitness < old_fitness
                if found_new_best:
                    stagnation_counter = 0
                    if logger:
                        logger.log_new_best_found(generation, self.best.fitness, old_fitness)
                    self._notify(progress_callback, generation, self.best.fitness)
                else:
                    stagnation_counter += 1

                self._record_generation(
                    generation, child_best, stagnation_counter, found_new_best
                )
                if logger:
                    logger.log_generation_summary(
                        generation,
                        child_best,
                        self.best.fitness,
                        stagnation_counter,
                        found_new_best,
                    )

        # TERMINATE
        self.generations_run = generation
        if stagnation_counter >= self.config.stagnation_generations and logger:
            logger.log_stagnation_stop(stagnation_counter)
        if logger:
            logger.log_optimization_complete(
                generation, self.best.fitness, initial_fitness, self.best
            )

        return self.best.copy()

    # MARK: - Population

    def _initialize_population(self, instance: Instance, rng: random.Random) -> List[Genome]:
        """Initialize a population of independently randomized feasible genomes."""
        return [Genome.random(instance, rng) for _ in range(self.config.population_size)]

    def _average_fitness(self) -> float:
        return sum(genome.fitness for genome in self.population) / len(self.population)

    def _run_generation(
        self, rng: random.Random, executor: Optional[ThreadPoolExecutor]
    ) -> Iterator[Genome]:
        """Run one generation of tournaments, yielding each child once it is evaluated.

        Sequential tournaments are yielded one by one so the caller can keep a
        good child before a later tournament of the same generation overwrites
        its slot.
        """
        if executor is None:
            for _ in range(self.config.tournaments_per_generation):
                contestants = rng.sample(
                    range(len(self.population)), self.config.tournament_size
                )
                yield self._tournament(contestants, rng)
            return

        groups = self._disjoint_tournaments(rng)
        # One RNG per tournament keeps parallel runs reproducible for a given seed
        futures = [
            executor.submit(self._tournament, group, random.Random(rng.getrandbits(64)))
            for group in groups
        ]
        for future in futures:
            yield future.result()

    def _disjoint_tournaments(self, rng: random.Random) -> List[List[int]]:
        """Partition a random permutation of the population into disjoint tournaments."""
        order = list(range(len(self.population)))
        rng.shuffle(order)
        size = self.config.tournament_size
        return [
            order[i * size : (i + 1) * size]
            for i in range(self.config.tournaments_per_generation)
        ]

    def _tournament(self, contestants: Sequence[int], rng: random.Random) -> Genome:
        """Overwrite the worst contestant with a mutated cross of the best two."""
        ranked = sorted(contestants, key=lambda i: self.population[i].fitness)
        first = self.population[ranked[0]]
        second = self.population[ranked[1]]
        child = self.population[ranked[-1]]

        first.clone_into(child)
        self._crossover(second, child, rng)
        self._mutate(child, rng)
        child.evaluate()
        return child

    # MARK: - Operators

    def _crossover(self, donor: Genome, child: Genome, rng: random.Random) -> None:
        """Give ``child`` the placements of ``donor`` over a random contiguous index range.

        Tests of the range are re-placed through the genome's own scheduling
        primitives rather than copied, so the child stays feasible.
        """
        if child.size < 2:
            return
        first, last = sorted(rng.sample(range(child.size), 2))
        child.take_segment(donor, first, last)

    def _mutate(self, child: Genome, rng: random.Random) -> None:
        """Apply per-gene rescheduling plus the occasional larger perturbation."""
        for index in range(child.size):
            if rng.random() < self.config.mutation_probability:
                child.reschedule(index)

        if child.size > 1 and rng.random() < self.config.swap_probability:
            first, second = rng.sample(range(child.size), 2)
            child.swap_places(first, second)

        if child.size > 1 and rng.random() < self.config.scramble_probability:
            first, last = sorted(rng.sample(range(child.size), 2))
            child.scramble_genes(first, last, rng)

        if rng.random() < self.config.randomize_probability:
            child.evaluate()
            child.randomize(rng)

    # MARK: - Bookkeeping

    def _notify(
        self, progress_callback: Optional[ProgressCallback], generation: int, fitness: int
    ) -> None:
        if progress_callback is None:
            return
        try:
            progress_callback(generation, fitness)
        except Exception as e:
            # Don't let callback errors stop optimization
            _logger.warning(f"Progress callback failed: {e}")

    def _record_generation(
        self,
        generation: int,
        child_best: Optional[int],
        stagnation_counter: int,
        found_new_best: bool,
    ) -> None:
        assert self.best is not None
        fitness_scores = [genome.fitness for genome in self.population]
        self.generation_history.append(
            {
                "generation": generation,
                "best_fitness": child_best,
                "avg_fitness": sum(fitness_scores) / len(fitness_scores),
                "worst_fitness": max(fitness_scores),
                "global_best_fitness": self.best.fitness,
                "stagnation": stagnation_counter,
                "new_best": found_new_best,
            }
        )


def optimize_schedule(
    instance: Instance,
    config: Optional[GeneticAlgorithmConfig] = None,
    cancellation: Optional[CancellationToken] = None,
    progress_callback: Optional[ProgressCallback] = None,
    enable_evolution_logging: bool = True,
    log_level: str = "INFO",
    show_history: bool = False,
) -> Tuple[Genome, GeneticSchedulerOptimizer]:
    """
    Convenience function to optimize a schedule using the genetic algorithm.

    Args:
        instance: Problem to schedule
        config: Genetic algorithm configuration (optional)
        cancellation: Token polled once per generation (optional)
        progress_callback: Hook called with (generation, makespan) on improvement
        enable_evolution_logging: Whether to log evolution progress
        log_level: Logging level for evolution tracking ("DEBUG", "INFO", "WARNING", "ERROR")
        show_history: Whether to print the generation history table afterwards

    Returns:
        Tuple of (best_genome, optimizer)
        The optimizer keeps generation_history for displaying evolution if desired.
    """
    logger = None
    if enable_evolution_logging:
        from testsorter.utils.genetic_algorithm_logger import GeneticAlgorithmLogger

        logger = GeneticAlgorithmLogger()
        logger.configure_evolution_logging(log_level)

    optimizer = GeneticSchedulerOptimizer(config)
    best = optimizer.optimize(instance, cancellation, logger, progress_callback)

    if show_history:
        from testsorter.utils.genetic_algorithm_logger import GeneticAlgorithmLogger

        GeneticAlgorithmLogger.print_generation_history(list(optimizer.generation_history))

    return best, optimizer


def solve(
    instance: Instance,
    time_budget_ms: int = 0,
    config: Optional[GeneticAlgorithmConfig] = None,
    progress_callback: Optional[ProgressCallback] = None,
    logger: Optional["GeneticAlgorithmLogger"] = None,
) -> Solution:
    """
    Validate ``instance`` and optimize it within ``time_budget_ms``.

    The optimizer runs on a dedicated worker thread while a timer thread
    cancels it once the budget has elapsed (``0`` disables the deadline and
    leaves only the stagnation limit). The caller blocks until the worker
    returns; errors raised by the worker are re-raised here.
    """
    validate_instance(instance)
    token = CancellationToken.from_budget(time_budget_ms)
    optimizer = GeneticSchedulerOptimizer(config)

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="testsorter") as worker:
        with DeadlineTimer(token, time_budget_ms):
            future = worker.submit(
                optimizer.optimize, instance, token, logger, progress_callback
            )
            best = future.result()

    _logger.info(
        f"Solved {instance.test_count} tests in {optimizer.generations_run} generations, makespan {best.fitness}"
    )
    return best.to_solution()


__all__ = [
    "GeneticAlgorithmConfig",
    "GeneticSchedulerOptimizer",
    "optimize_schedule",
    "solve",
]

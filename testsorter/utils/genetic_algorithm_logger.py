from typing import List, Dict, Optional, TYPE_CHECKING
import logging

from rich.console import Console
from rich.table import Table
from rich.text import Text

from testsorter.common.console import get_console

if TYPE_CHECKING:
    from testsorter.services.genetic_optimizer import GeneticAlgorithmConfig
    from testsorter.services.genome import Genome


OPTIMIZER_LOGGER_NAME = "testsorter.services.genetic_optimizer"


class GeneticAlgorithmLogger:
    """Logger for genetic algorithm evolution progress and results."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(OPTIMIZER_LOGGER_NAME)

    @staticmethod
    def print_generation_history(
        generation_history: List[Dict], console: Optional[Console] = None
    ) -> Table:
        """Print a table showing the evolution across generations."""
        if console is None:
            console = get_console()

        table = Table(
            title="🧬 Genetic Algorithm Evolution History",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Gen", style="cyan", width=6)
        table.add_column("Child Best", style="green", width=10)
        table.add_column("Global Best", style="bold green", width=11)
        table.add_column("Average", style="yellow", width=10)
        table.add_column("Worst", style="red", width=8)
        table.add_column("Stagnation", style="yellow", width=10)
        table.add_column("Improvement", style="bold", width=12)

        for data in generation_history:
            if data["new_best"]:
                improvement = Text("🎯 NEW BEST", style="bold green")
            else:
                improvement = Text("⏳ Stagnant", style="dim")

            if data["stagnation"] > 10:
                stagnation_style = "bold red"
            elif data["stagnation"] > 0:
                stagnation_style = "yellow"
            else:
                stagnation_style = "green"

            table.add_row(
                str(data["generation"]),
                str(data["best_fitness"]),
                str(data["global_best_fitness"]),
                f"{data['avg_fitness']:.2f}",
                str(data["worst_fitness"]),
                Text(str(data["stagnation"]), style=stagnation_style),
                improvement,
            )

        console.print(table)

        if generation_history:
            initial_best = generation_history[0]["global_best_fitness"]
            final_best = generation_history[-1]["global_best_fitness"]
            improvement_pct = (
                ((initial_best - final_best) / initial_best) * 100
                if initial_best > 0
                else 0
            )
            new_best_count = sum(1 for data in generation_history if data["new_best"])
            console.print("\n[bold green]📊 Evolution Summary:[/bold green]")
            console.print(f"  Initial Best Makespan: {initial_best}")
            console.print(f"  Final Best Makespan: {final_best}")
            console.print(f"  Total Improvement: {improvement_pct:.1f}%")
            console.print(f"  Generations Run: {len(generation_history)}")
            console.print(f"  New Best Found: {new_best_count} times")

        return table

    def configure_evolution_logging(self, level: str = "INFO") -> None:
        """Configure logging to see genetic algorithm evolution progress.

        Args:
            level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        """
        logging.basicConfig(
            level=getattr(logging, level.upper()),
            format="%(asctime)s - %(levelname)s - %(message)s",
            handlers=[logging.StreamHandler()],
        )
        self.logger.setLevel(getattr(logging, level.upper()))

    def log_optimization_start(
        self, num_tests: int, config: "GeneticAlgorithmConfig"
    ) -> None:
        self.logger.info(
            f"🧬 Starting genetic algorithm optimization with {num_tests} tests"
        )
        self.logger.info(
            f"   Population size: {config.population_size}, "
            f"Stagnation limit: {config.stagnation_generations}, "
            f"Tournaments per generation: {config.tournaments_per_generation}"
        )
        if config.parallel_tournaments:
            self.logger.info(
                f"   Running tournaments on {config.max_workers or 'all'} worker threads"
            )

    def log_initial_population(self, best_fitness: int, avg_fitness: float) -> None:
        self.logger.info(
            f"   Initial population: best makespan {best_fitness}, average {avg_fitness:.2f}"
        )

    def log_new_best_found(
        self, generation: int, fitness: int, old_fitness: int
    ) -> None:
        improvement = (
            ((old_fitness - fitness) / old_fitness * 100) if old_fitness > 0 else 0
        )
        self.logger.info(
            f"🎯 NEW BEST found in generation {generation}! "
            f"Makespan: {fitness} (improved by {improvement:.1f}%)"
        )

    def log_generation_summary(
        self,
        generation: int,
        child_best: int,
        global_best: int,
        stagnation_counter: int,
        found_new_best: bool,
    ) -> None:
        # Every generation for the first 10, then every 10th or on improvement
        if generation <= 10 or generation % 10 == 0 or found_new_best:
            stagnation_status = (
                "🔥 Active"
                if stagnation_counter == 0
                else f"⏳ Stagnant ({stagnation_counter})"
            )
            self.logger.debug(
                f"📊 Gen {generation:5d}: Child={child_best} Global={global_best} "
                f"{stagnation_status}"
            )

    def log_stagnation_stop(self, stagnation_counter: int) -> None:
        self.logger.info(
            f"⏹️  Stopping: No improvement for {stagnation_counter} generations."
        )

    def log_cancellation_stop(self, generation: int) -> None:
        self.logger.info(
            f"⏹️  Stopping: Cancellation observed before generation {generation + 1}."
        )

    def log_optimization_complete(
        self, generations_run: int, final_fitness: int, initial_fitness: int, best: "Genome"
    ) -> None:
        final_improvement = (
            ((initial_fitness - final_fitness) / initial_fitness * 100)
            if initial_fitness > 0
            else 0
        )
        machines_used = len({machine for machine in best.machines if machine is not None})
        self.logger.info(f"✅ Optimization complete! Ran {generations_run} generations")
        self.logger.info(
            f"   Final makespan: {final_fitness} (improved {final_improvement:.1f}% from start)"
        )
        self.logger.info(
            f"   Tests scheduled: {best.size} on {machines_used} machines"
        )

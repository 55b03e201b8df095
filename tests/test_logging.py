import logging

from rich.console import Console
from rich.table import Table

from testsorter.common import settings
from testsorter.common.console import get_console
from testsorter.services.genetic_optimizer import GeneticAlgorithmConfig
from testsorter.utils.genetic_algorithm_logger import GeneticAlgorithmLogger


def _clear_settings_cache():
    settings.get_log_verbosity.cache_clear()
    settings.get_default_seed.cache_clear()
    settings.parallel_tournaments_enabled.cache_clear()


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("TESTSORTER_LOG_VERBOSITY", "WARNING")
    monkeypatch.setenv("TESTSORTER_SEED", "42")
    monkeypatch.setenv("TESTSORTER_PARALLEL_TOURNAMENTS", "yes")
    _clear_settings_cache()
    try:
        assert settings.get_log_verbosity() == "warning"
        assert settings.get_default_seed() == 42
        assert settings.parallel_tournaments_enabled()
        config = GeneticAlgorithmConfig(population_size=30)
        assert config.seed == 42
        assert config.parallel_tournaments
    finally:
        _clear_settings_cache()


def test_settings_defaults(monkeypatch):
    monkeypatch.delenv("TESTSORTER_LOG_VERBOSITY", raising=False)
    monkeypatch.delenv("TESTSORTER_SEED", raising=False)
    monkeypatch.delenv("TESTSORTER_PARALLEL_TOURNAMENTS", raising=False)
    _clear_settings_cache()
    try:
        assert settings.get_log_verbosity() == "info"
        assert settings.get_default_seed() is None
        assert not settings.parallel_tournaments_enabled()
    finally:
        _clear_settings_cache()


def test_console_is_quiet_for_warning_level():
    assert get_console("warning").quiet
    assert not get_console("debug").quiet


def test_logger_reports_new_best(caplog):
    ga_logger = GeneticAlgorithmLogger()
    with caplog.at_level(logging.INFO, logger="testsorter.services.genetic_optimizer"):
        ga_logger.log_new_best_found(7, 80, 100)
        ga_logger.log_stagnation_stop(50)
        ga_logger.log_cancellation_stop(9)

    assert "NEW BEST found in generation 7" in caplog.text
    assert "improved by 20.0%" in caplog.text
    assert "No improvement for 50 generations" in caplog.text
    assert "before generation 10" in caplog.text


def test_generation_history_table():
    console = Console(record=True, width=120)
    history = [
        {
            "generation": 1,
            "best_fitness": 12,
            "avg_fitness": 14.5,
            "worst_fitness": 18,
            "global_best_fitness": 12,
            "stagnation": 0,
            "new_best": True,
        },
        {
            "generation": 2,
            "best_fitness": 13,
            "avg_fitness": 14.0,
            "worst_fitness": 17,
            "global_best_fitness": 12,
            "stagnation": 1,
            "new_best": False,
        },
    ]

    table = GeneticAlgorithmLogger.print_generation_history(history, console)
    output = console.export_text()

    assert isinstance(table, Table)
    assert table.row_count == 2
    assert "Evolution Summary" in output
    assert "Generations Run: 2" in output

import importlib.util
from pathlib import Path

import pytest

ENTRYPOINT = Path(__file__).resolve().parent.parent / "docker-entrypoint.py"


@pytest.fixture
def entrypoint(monkeypatch):
    module_spec = importlib.util.spec_from_file_location("docker_entrypoint", ENTRYPOINT)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    sleeps = []
    monkeypatch.setattr(module.time, "sleep", sleeps.append)
    module.sleeps = sleeps
    return module


class FlakyGenerator:
    """Fails once, then stops the loop the way Ctrl-C would."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    def generate_daily_edition(self):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def test_periodic_generation_survives_errors(entrypoint) -> None:
    generator = FlakyGenerator([RuntimeError("store down"), KeyboardInterrupt()])

    entrypoint.run_content_generation(generator, interval=1)

    assert generator.calls == 2
    assert entrypoint.sleeps == [60]


def test_periodic_generation_waits_for_interval(entrypoint) -> None:
    generator = FlakyGenerator([None, KeyboardInterrupt()])

    entrypoint.run_content_generation(generator, interval=0.5)

    assert entrypoint.sleeps == [1800]


def test_single_run_does_not_sleep(entrypoint) -> None:
    generator = FlakyGenerator([None])

    entrypoint.run_content_generation(generator)

    assert generator.calls == 1
    assert entrypoint.sleeps == []

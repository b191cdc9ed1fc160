# conftest.py
from __future__ import annotations

import os
import uuid

import pytest
import pytest_asyncio

from tests.helpers import (
    FakeBeacon,
    FakeDistribution,
    FakeExecution,
    FakeGenerator,
    FakeStateManager,
    FakeStorage,
    FakeTxLayer,
    make_config,
    make_state,
)
from watchtower.core.log import (
    bind_context,
    configure_from_env,
    enable_stdout_logging,
    get_logger,
    log_context,
)
from watchtower.rewards.distribution import ArtifactDistributor
from watchtower.tasks.base import TransactionSubmitter
from watchtower.tasks.rewards import RewardsSubmissionTask


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: pure functions and single components")
    config.addinivalue_line("markers", "integration: tasks wired to in-memory chain fakes")


def pytest_addoption(parser):
    parser.addoption(
        "--log-json",
        action="store_true",
        default=False,
        help="Emit watchtower logs in JSON format during tests",
    )


@pytest.fixture(scope="session", autouse=True)
def _configure_watchtower_logging(request):
    configure_from_env()
    prefer_json = request.config.getoption("--log-json")
    # stdout logging is on by default in tests unless the env already chose
    if os.getenv("WATCHTOWER_LOG_STDOUT", "").lower() not in ("1", "true", "yes", "on"):
        enable_stdout_logging(
            level="DEBUG",
            json_output=prefer_json,
            pretty=not prefer_json,
            route_errors_to_stderr=True,
        )
    bind_context(role="pytest")


@pytest.fixture(scope="session")
def session_run_id():
    return uuid.uuid4().hex[:8]


@pytest.fixture(autouse=True)
def _test_log_context(request, session_run_id):
    log = get_logger("test")
    with log_context(pytest_nodeid=request.node.nodeid, test=request.node.name, test_run=session_run_id):
        log.debug("pytest.test.start", event="pytest.test.start")
        yield


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    rep = outcome.get_result()
    if rep.when == "call":
        log = get_logger("test")
        with log_context(pytest_nodeid=item.nodeid, test=item.name):
            log.debug(
                "pytest.test.finish",
                event="pytest.test.finish",
                outcome=rep.outcome,
                duration=getattr(rep, "duration", None),
            )


@pytest.fixture
def tlog():
    return get_logger("test")


# ---- watchtower wiring


@pytest.fixture
def cfg(tmp_path):
    return make_config(tmp_path / "rewards-trees")


@pytest.fixture
def head_state():
    return make_state()


@pytest.fixture
def beacon():
    # epoch 1226 finalizes the first interval's snapshot (target epoch 1225)
    return FakeBeacon(finalized_epoch=1230)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def tx():
    return FakeTxLayer()


@pytest.fixture
def distribution():
    return FakeDistribution()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def state_manager(head_state):
    return FakeStateManager(head_state)


@pytest.fixture
def errors():
    """Background failures routed through the single-flight error sink."""
    return []


@pytest.fixture
def submitter(cfg, tx):
    return TransactionSubmitter(cfg, tx)


@pytest_asyncio.fixture
async def rewards_factory(tmp_path, state_manager, beacon, storage, generator, distribution, tx, errors):
    """Build rewards tasks sharing the fakes; config overrides apply per task."""
    built: list[RewardsSubmissionTask] = []

    def _make(**overrides) -> RewardsSubmissionTask:
        task_cfg = make_config(tmp_path / "rewards-trees", **overrides)
        task = RewardsSubmissionTask(
            task_cfg,
            state_manager=state_manager,
            beacon=beacon,
            execution=FakeExecution(),
            storage=storage,
            generator=generator,
            distributor=ArtifactDistributor.from_config(distribution, task_cfg),
            submitter=TransactionSubmitter(task_cfg, tx),
            on_error=errors.append,
        )
        built.append(task)
        return task

    try:
        yield _make
    finally:
        for task in built:
            await task.flight.cancel()


@pytest.fixture
def rewards_task(rewards_factory):
    return rewards_factory()

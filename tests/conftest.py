from __future__ import annotations

import pytest

from bio_verifier import (
    CodeGenerator,
    CodeMatcher,
    DynamoBackend,
    EngineSettings,
    Identity,
    LocalFileBackend,
    Reconciler,
    VerificationEngine,
    VerificationStore,
)
from tests.fakes import (
    COMMUNITY_ID,
    ROLE_ID,
    FakeTable,
    RecordingDispatcher,
    ScriptedFetcher,
    StaticDirectory,
    found,
    no_sleep,
)


@pytest.fixture
def identity() -> Identity:
    return Identity(community_id=COMMUNITY_ID, member_id=1001)


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(
        quick_check_delay_seconds=0,
        sweep_attempt_delay_seconds=0,
        sweep_identity_delay_seconds=0,
        sweep_attempts=3,
    )


@pytest.fixture
def table() -> FakeTable:
    return FakeTable()


@pytest.fixture
def store(tmp_path, table) -> VerificationStore:
    return VerificationStore(
        LocalFileBackend(tmp_path / "verification-data.json"), DynamoBackend(table)
    )


@pytest.fixture
def fetcher() -> ScriptedFetcher:
    return ScriptedFetcher(found("nothing here yet"))


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def directory() -> StaticDirectory:
    return StaticDirectory()


@pytest.fixture
def reconciler(store, fetcher, dispatcher, settings) -> Reconciler:
    return Reconciler(store, fetcher, CodeMatcher(), dispatcher, settings, sleep=no_sleep)


@pytest.fixture
def engine(store, reconciler, dispatcher, directory, settings) -> VerificationEngine:
    engine = VerificationEngine(
        store, reconciler, CodeGenerator(directory), dispatcher, settings
    )
    engine.configure_community(COMMUNITY_ID, ROLE_ID)
    return engine

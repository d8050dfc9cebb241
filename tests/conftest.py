"""Shared fixtures for openxai_indexer tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from openxai_indexer.ledger.events import EventLedger
from openxai_indexer.ledger.ingestor import EventIngestor
from openxai_indexer.models.config import (
    MAINNET_CHAIN_ID,
    SEPOLIA_CHAIN_ID,
    ChainConfig,
    IndexerConfig,
)
from openxai_indexer.rewards.engine import RewardEngine
from openxai_indexer.rewards.issuer import ProofIssuer
from openxai_indexer.rewards.milestones import MilestoneTable
from openxai_indexer.storage.documents import events_store, rewards_store, signs_store
from openxai_indexer.storage.sqlite import SQLiteDocumentMedium

from tests.factories import CLAIMER_CONTRACT, TOKEN
from tests.mocks import FailingMedium, MockEventSource, MockSigner, MockSignerProvider

# Hardhat development account #0
TEST_SIGNER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_SIGNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

# Tier 0: completed, rate 0.1. Tier 1: open, rate 0.5. Tier 2: completed, rate 1/3.
TEST_PROJECTS = [
    {"fundingGoal": "1000", "backersRewards": "80", "flashBonus": "20", "status": "Completed"},
    {"fundingGoal": "2000", "backersRewards": "900", "flashBonus": "100", "status": "Active"},
    {"fundingGoal": "3000", "backersRewards": "1000", "flashBonus": "0", "status": "Completed"},
]


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add chain info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Chains"] = f"mainnet ({MAINNET_CHAIN_ID}), sepolia ({SEPOLIA_CHAIN_ID}, test)"
    meta["Claimer Contract"] = CLAIMER_CONTRACT
    meta["Signer Account"] = TEST_SIGNER_ADDRESS


def make_test_chains() -> list[ChainConfig]:
    return [
        ChainConfig(
            name="mainnet",
            chain_id=MAINNET_CHAIN_ID,
            initial_proof_id=1,
            claimer_address=CLAIMER_CONTRACT,
            token_address=TOKEN,
        ),
        ChainConfig(
            name="sepolia",
            chain_id=SEPOLIA_CHAIN_ID,
            test_chain=True,
            initial_proof_id=11,
            claimer_address=CLAIMER_CONTRACT,
            token_address=TOKEN,
        ),
    ]


def make_test_config(**overrides) -> IndexerConfig:
    """Build an IndexerConfig suitable for testing."""
    defaults = dict(
        host="127.0.0.1",
        port=0,
        poll_interval=0,
        error_backoff=0,
        db_path=":memory:",
        signer_key=TEST_SIGNER_KEY,
        chains=make_test_chains(),
    )
    defaults.update(overrides)
    return IndexerConfig(**defaults)


@pytest.fixture
def test_config():
    """Default IndexerConfig for tests."""
    return make_test_config()


@pytest.fixture
def chains():
    return {c.chain_id: c for c in make_test_chains()}


@pytest.fixture
async def medium():
    """Initialized in-memory SQLite medium wrapped for failure injection."""
    m = FailingMedium(SQLiteDocumentMedium(":memory:"))
    await m.initialize()
    yield m
    await m.close()


@pytest.fixture
def events(medium):
    return events_store(medium)


@pytest.fixture
def rewards(medium):
    return rewards_store(medium)


@pytest.fixture
def signs(medium):
    return signs_store(medium)


@pytest.fixture
def milestones():
    return MilestoneTable.from_projects(TEST_PROJECTS)


@pytest.fixture
def engine(milestones):
    return RewardEngine(milestones, test_chain_ids={SEPOLIA_CHAIN_ID})


@pytest.fixture
def mock_signer():
    return MockSigner()


@pytest.fixture
def signer_provider(mock_signer):
    return MockSignerProvider(mock_signer)


@pytest.fixture
async def issuer(events, rewards, engine, signer_provider, chains):
    """ProofIssuer with rewards state initialized for both chains."""
    i = ProofIssuer(events, rewards, engine, signer_provider, chains)
    await i.ensure_chains()
    return i


@pytest.fixture
def mainnet_source():
    return MockEventSource(MAINNET_CHAIN_ID)


@pytest.fixture
def ingestor(events, mainnet_source):
    return EventIngestor(events, [mainnet_source, MockEventSource(SEPOLIA_CHAIN_ID)])


async def seed(store, *records) -> None:
    """Insert events directly into an events store."""

    def _insert(ledger: EventLedger) -> None:
        for r in records:
            ledger.insert(r)

    await store.update(_insert)

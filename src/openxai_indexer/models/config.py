"""Configuration models for the indexer service."""

from __future__ import annotations

from dataclasses import dataclass, field

GENESIS_ADDRESS = "0xBb2b75AF6D25A9474BCBef8AF08FF80A80316cD1"

MAINNET_CHAIN_ID = 1
SEPOLIA_CHAIN_ID = 11155111


@dataclass
class ChainConfig:
    """A chain the service watches and issues proofs for."""

    name: str
    chain_id: int
    rpc_url: str = ""
    test_chain: bool = False  # milestone completion gate is bypassed
    initial_proof_id: int = 1  # first issued proof gets initial_proof_id + 1
    claimer_address: str = ""  # verifying contract of the claim domain
    genesis_address: str = GENESIS_ADDRESS
    token_address: str = ""
    signer_key_path: str = ""  # overrides the global key file


def default_chains() -> list[ChainConfig]:
    return [
        ChainConfig(name="mainnet", chain_id=MAINNET_CHAIN_ID, initial_proof_id=1),
        ChainConfig(
            name="sepolia",
            chain_id=SEPOLIA_CHAIN_ID,
            test_chain=True,
            initial_proof_id=11,
        ),
    ]


@dataclass
class IndexerConfig:
    """Complete service configuration."""

    # Service
    log_level: str = "info"
    host: str = "0.0.0.0"
    port: int = 3001
    base_path: str = "/"
    poll_interval: int = 12  # seconds
    error_backoff: int = 30  # seconds
    lookback_blocks: int = 100
    batch_size: int = 2000  # blocks per eth_getLogs request

    # Storage
    data_dir: str = "~/.openxai_indexer"
    db_path: str = ""  # defaults to {data_dir}/storage.db

    # Rewards
    projects_path: str = ""  # defaults to {data_dir}/projects.json
    signer_key_path: str = ""  # defaults to {data_dir}/signer.key
    signer_key: str = ""  # loaded from env var OPENXAI_INDEXER_SIGNER_KEY

    chains: list[ChainConfig] = field(default_factory=default_chains)

    def chain(self, chain_id: int) -> ChainConfig | None:
        for c in self.chains:
            if c.chain_id == chain_id:
                return c
        return None

    @property
    def test_chain_ids(self) -> frozenset[int]:
        return frozenset(c.chain_id for c in self.chains if c.test_chain)

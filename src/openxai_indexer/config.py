"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from openxai_indexer.models.config import (
    GENESIS_ADDRESS,
    ChainConfig,
    IndexerConfig,
)


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "OPENXAI_INDEXER_",
) -> IndexerConfig:
    """Load service configuration from TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (OPENXAI_INDEXER_SIGNER_KEY, etc.)
        2. TOML config file
        3. Defaults from IndexerConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = IndexerConfig()

    # ── Service section ────────────────────────────────────
    service = raw.get("service", {})
    if v := service.get("log_level"):
        cfg.log_level = str(v)
    if v := service.get("host"):
        cfg.host = str(v)
    if v := service.get("port"):
        cfg.port = int(v)
    if v := service.get("base_path"):
        cfg.base_path = str(v)
    if v := service.get("poll_interval"):
        cfg.poll_interval = int(v)
    if v := service.get("error_backoff"):
        cfg.error_backoff = int(v)
    if (v := service.get("lookback_blocks")) is not None:
        cfg.lookback_blocks = int(v)
    if v := service.get("batch_size"):
        cfg.batch_size = int(v)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("data_dir"):
        cfg.data_dir = str(v)
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Rewards section ────────────────────────────────────
    rewards = raw.get("rewards", {})
    if v := rewards.get("projects_path"):
        cfg.projects_path = str(v)
    if v := rewards.get("signer_key_path"):
        cfg.signer_key_path = str(v)

    # ── Chains ─────────────────────────────────────────────
    if chains_raw := raw.get("chains"):
        cfg.chains = [_parse_chain(c) for c in chains_raw]

    # ── Environment variable overrides (highest priority) ──
    if v := os.environ.get(f"{env_prefix}DATA_DIR"):
        cfg.data_dir = v
    if v := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = v
    if v := os.environ.get(f"{env_prefix}HOST"):
        cfg.host = v
    if v := os.environ.get(f"{env_prefix}PORT"):
        cfg.port = int(v)
    if v := os.environ.get(f"{env_prefix}BASE_PATH"):
        cfg.base_path = v
    if v := os.environ.get(f"{env_prefix}SIGNER_KEY"):
        cfg.signer_key = v
    if v := os.environ.get(f"{env_prefix}LOG_LEVEL"):
        cfg.log_level = v
    if infura_key := os.environ.get(f"{env_prefix}INFURA_API_KEY"):
        for chain in cfg.chains:
            if not chain.rpc_url:
                chain.rpc_url = f"https://{chain.name}.infura.io/v3/{infura_key}"

    # Derived paths, ~ expanded
    data_dir = Path(cfg.data_dir).expanduser()
    cfg.data_dir = str(data_dir)
    cfg.db_path = str(Path(cfg.db_path).expanduser()) if cfg.db_path else str(data_dir / "storage.db")
    cfg.projects_path = (
        str(Path(cfg.projects_path).expanduser()) if cfg.projects_path
        else str(data_dir / "projects.json")
    )
    cfg.signer_key_path = (
        str(Path(cfg.signer_key_path).expanduser()) if cfg.signer_key_path
        else str(data_dir / "signer.key")
    )
    for chain in cfg.chains:
        if chain.signer_key_path:
            chain.signer_key_path = str(Path(chain.signer_key_path).expanduser())

    return cfg


def _parse_chain(raw: dict) -> ChainConfig:
    try:
        name = str(raw["name"])
        chain_id = int(raw["chain_id"])
    except KeyError as exc:
        raise ValueError(f"[[chains]] entry is missing {exc.args[0]}") from exc
    return ChainConfig(
        name=name,
        chain_id=chain_id,
        rpc_url=str(raw.get("rpc_url", "")),
        test_chain=bool(raw.get("test_chain", False)),
        initial_proof_id=int(raw.get("initial_proof_id", 1)),
        claimer_address=str(raw.get("claimer_address", "")),
        genesis_address=str(raw.get("genesis_address", GENESIS_ADDRESS)),
        token_address=str(raw.get("token_address", "")),
        signer_key_path=str(raw.get("signer_key_path", "")),
    )

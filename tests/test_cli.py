"""CLI commands against a local database."""

from __future__ import annotations

import asyncio

from click.testing import CliRunner

from openxai_indexer.cli import cli
from openxai_indexer.models.records import ChainRewardsState, Proof
from openxai_indexer.storage.documents import events_store, rewards_store
from openxai_indexer.storage.sqlite import SQLiteDocumentMedium

from tests.factories import CLAIMER, make_participated, make_transfer


def write_database(db_path: str) -> None:
    async def _write():
        medium = SQLiteDocumentMedium(db_path)
        await medium.initialize()
        try:
            def _events(ledger):
                ledger.insert(make_participated())
                ledger.insert(make_transfer())

            def _rewards(state):
                state[1] = ChainRewardsState(
                    next_proof_id=2,
                    proofs={2: Proof(2, CLAIMER, 10**17, ("event:x",), b"\x01" * 65)},
                    already_claimed={"event:x"},
                )

            await events_store(medium).update(_events)
            await rewards_store(medium).update(_rewards)
        finally:
            await medium.close()

    asyncio.run(_write())


def invoke(tmp_path, *args):
    db = tmp_path / "storage.db"
    return CliRunner().invoke(
        cli, list(args), env={"OPENXAI_INDEXER_DB_PATH": str(db), "OPENXAI_INDEXER_SIGNER_KEY": ""},
    )


def test_status_masks_secrets(tmp_path):
    result = CliRunner().invoke(
        cli, ["status"],
        env={"OPENXAI_INDEXER_SIGNER_KEY": "0xsecret", "OPENXAI_INDEXER_INFURA_API_KEY": "k3y"},
    )
    assert result.exit_code == 0
    assert "0xsecret" not in result.output
    assert "k3y" not in result.output
    assert "***configured***" in result.output
    assert "sepolia (11155111) [test chain]" in result.output


def test_events_lists_ledger(tmp_path):
    write_database(str(tmp_path / "storage.db"))

    result = invoke(tmp_path, "events", "--type", "Transfer")

    assert result.exit_code == 0
    assert "Transfer" in result.output
    assert "Participated" not in result.output


def test_proofs_lists_issued(tmp_path):
    write_database(str(tmp_path / "storage.db"))

    result = invoke(tmp_path, "proofs", "--chain-id", "1")

    assert result.exit_code == 0
    assert "next proof id 2" in result.output
    assert f"#2 claimer={CLAIMER} amount={10**17}" in result.output


def test_run_requires_claimer_contract(tmp_path):
    result = invoke(tmp_path, "run")
    assert result.exit_code == 1
    assert "No claimer contract configured" in result.output

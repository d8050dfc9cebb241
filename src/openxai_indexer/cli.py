"""CLI entry point for the openxai_indexer service."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
import httpx

from openxai_indexer.config import load_config
from openxai_indexer.daemon import run_daemon
from openxai_indexer.models.events import event_to_dict
from openxai_indexer.storage.documents import events_store, rewards_store
from openxai_indexer.storage.sqlite import SQLiteDocumentMedium


def _require_claimers(cfg):
    """Exit with error if a chain has no claimer contract configured."""
    missing = [c.name for c in cfg.chains if not c.claimer_address]
    if missing:
        click.echo(f"Error: No claimer contract configured for: {', '.join(missing)}", err=True)
        click.echo("Set claimer_address in the [[chains]] entries of the config.", err=True)
        sys.exit(1)


def _require_signer(cfg):
    """Exit with error if neither a signer key nor a key file is available."""
    paths = [cfg.signer_key_path] + [c.signer_key_path for c in cfg.chains if c.signer_key_path]
    if not cfg.signer_key and not any(Path(p).exists() for p in paths):
        click.echo("Error: No signer key configured.", err=True)
        click.echo(
            f"Set OPENXAI_INDEXER_SIGNER_KEY or write the key to {cfg.signer_key_path}.",
            err=True,
        )
        sys.exit(1)


def _url(base: str, route: str) -> str:
    return base.rstrip("/") + "/" + route


def _post(url: str, body: dict) -> httpx.Response:
    try:
        with httpx.Client(timeout=30) as client:
            return client.post(url, json=body)
    except httpx.HTTPError as exc:
        click.echo(f"Request to {url} failed: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """openxai_indexer - OpenxAI event indexer and reward proof service."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Service ────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the indexer and HTTP API."""
    cfg = load_config(ctx.obj["config_path"])
    _require_claimers(cfg)
    _require_signer(cfg)
    if not ctx.obj["verbose"]:
        logging.getLogger().setLevel(cfg.log_level.upper())

    click.echo(f"Starting openxai_indexer on {cfg.host}:{cfg.port}")
    asyncio.run(run_daemon(cfg))


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show service configuration."""
    cfg = load_config(ctx.obj["config_path"])
    click.echo(f"Listen:      {cfg.host}:{cfg.port}{cfg.base_path}")
    click.echo(f"DB path:     {cfg.db_path}")
    click.echo(f"Projects:    {cfg.projects_path}")
    click.echo(f"Signer key:  {'***configured***' if cfg.signer_key else cfg.signer_key_path}")
    click.echo(f"Poll:        every {cfg.poll_interval}s, lookback {cfg.lookback_blocks} blocks")
    for chain in cfg.chains:
        click.echo("")
        click.echo(f"Chain {chain.name} ({chain.chain_id}){' [test chain]' if chain.test_chain else ''}")
        rpc = chain.rpc_url.rsplit("/", 1)[0] + "/***" if "infura.io" in chain.rpc_url else chain.rpc_url
        click.echo(f"  RPC:       {rpc or '(not set)'}")
        click.echo(f"  Claimer:   {chain.claimer_address or '(not set)'}")
        click.echo(f"  Genesis:   {chain.genesis_address or '(not set)'}")
        click.echo(f"  Token:     {chain.token_address or '(not set)'}")
        click.echo(f"  First id:  {chain.initial_proof_id + 1}")


@cli.command()
@click.option("--chain-id", type=int, default=None, help="Only events of this chain")
@click.option("--type", "event_type", default=None,
              help="Filter by type (TokensClaimed, Participated, Approval, Transfer)")
@click.pass_context
def events(ctx: click.Context, chain_id: int | None, event_type: str | None) -> None:
    """List ledger events stored in the database."""
    cfg = load_config(ctx.obj["config_path"])

    async def _events():
        medium = SQLiteDocumentMedium(cfg.db_path)
        await medium.initialize()
        try:
            ledger = await events_store(medium).get()
            rows = [e for e in ledger.events(chain_id) if not event_type or e.type == event_type]
            if not rows:
                click.echo("No events.")
                return

            for e in rows:
                doc = event_to_dict(e)
                payload = " ".join(
                    f"{wire}={doc[wire]}" for _, wire in e.PAYLOAD
                )
                click.echo(f"  [{e.type:13s}] chain={e.chain_id} block={e.block_number} "
                           f"tx={e.transaction_hash[:18]}... log={e.log_index} {payload}")
        finally:
            await medium.close()

    asyncio.run(_events())


@cli.command()
@click.option("--chain-id", type=int, default=None, help="Only proofs of this chain")
@click.option("--claimer", default=None, help="Only proofs for this address")
@click.pass_context
def proofs(ctx: click.Context, chain_id: int | None, claimer: str | None) -> None:
    """List issued proofs stored in the database."""
    cfg = load_config(ctx.obj["config_path"])

    async def _proofs():
        medium = SQLiteDocumentMedium(cfg.db_path)
        await medium.initialize()
        try:
            rewards = await rewards_store(medium).get()
            shown = 0
            for cid, chain_state in sorted(rewards.items()):
                if chain_id is not None and cid != chain_id:
                    continue
                click.echo(f"Chain {cid}: next proof id {chain_state.next_proof_id}, "
                           f"{len(chain_state.already_claimed)} events claimed")
                for pid, proof in sorted(chain_state.proofs.items()):
                    if claimer and proof.claimer.lower() != claimer.lower():
                        continue
                    click.echo(f"  #{pid} claimer={proof.claimer} amount={proof.amount} "
                               f"events={len(proof.based_on)}")
                    shown += 1
            if not shown:
                click.echo("No proofs.")
        finally:
            await medium.close()

    asyncio.run(_proofs())


# ── Remote ─────────────────────────────────────────────


@cli.command("get-proof")
@click.option("--url", default="http://localhost:3001/", help="Base URL of a running service")
@click.option("--chain-id", type=int, required=True)
@click.option("--claimer", required=True, help="Claiming address")
@click.argument("references", nargs=-1, required=True)
def get_proof(url: str, chain_id: int, claimer: str, references: tuple[str, ...]) -> None:
    """Request a signed proof for the given event references."""
    resp = _post(
        _url(url, "getProof"),
        {"chainId": chain_id, "claimer": claimer, "basedOn": list(references)},
    )
    if resp.status_code != 200:
        click.echo(f"Error ({resp.status_code}): {resp.text}", err=True)
        sys.exit(1)
    click.echo(json.dumps(resp.json(), indent=2))


@cli.command()
@click.option("--url", default="http://localhost:3001/", help="Base URL of a running service")
@click.option("--chain-id", type=int, required=True)
@click.option("--from-block", type=int, required=True)
@click.option("--to-block", type=int, required=True)
def sync(url: str, chain_id: int, from_block: int, to_block: int) -> None:
    """Ask a running service to re-ingest a block range."""
    resp = _post(
        _url(url, "sync"),
        {"chainId": chain_id, "fromBlock": from_block, "toBlock": to_block},
    )
    if resp.status_code != 200:
        click.echo(f"Error ({resp.status_code}): {resp.text}", err=True)
        sys.exit(1)
    click.echo(f"History sync started for chain {chain_id}, blocks {from_block}..{to_block}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

"""Event ABI fragments of the watched contracts."""

from __future__ import annotations


def _event(name: str, *inputs: tuple[str, str, bool]) -> dict:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [
            {"name": arg, "type": typ, "indexed": indexed} for arg, typ, indexed in inputs
        ],
    }


CLAIMER_ABI = [
    _event(
        "TokensClaimed",
        ("proofId", "uint256", True),
        ("account", "address", True),
        ("amount", "uint256", False),
    ),
]

GENESIS_ABI = [
    _event(
        "Participated",
        ("tier", "uint256", True),
        ("account", "address", True),
        ("amount", "uint256", False),
    ),
]

TOKEN_ABI = [
    _event(
        "Approval",
        ("owner", "address", True),
        ("spender", "address", True),
        ("value", "uint256", False),
    ),
    _event(
        "Transfer",
        ("from", "address", True),
        ("to", "address", True),
        ("value", "uint256", False),
    ),
]

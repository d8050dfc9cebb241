"""EVM chain integration components."""

from openxai_indexer.chain.source import Web3LogSource, decode_event

__all__ = ["Web3LogSource", "decode_event"]

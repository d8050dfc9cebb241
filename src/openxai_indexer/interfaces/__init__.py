"""Protocol interfaces for all openxai_indexer components."""

from openxai_indexer.interfaces.medium import DocumentMedium
from openxai_indexer.interfaces.signer import Signer, SignerProvider
from openxai_indexer.interfaces.source import ChainEventSource

__all__ = [
    "DocumentMedium",
    "Signer", "SignerProvider",
    "ChainEventSource",
]

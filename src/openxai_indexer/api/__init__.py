"""API components - HTTP server and object filter."""

from openxai_indexer.api.filter import passes_filter
from openxai_indexer.api.http_server import IndexerHTTPServer

__all__ = ["IndexerHTTPServer", "passes_filter"]

"""Ingestion layer.

This package contains adapters that fetch/receive data from the DCC IO
daemon (HTTP poll, event stream, command channel) and emit normalized
domain objects.
"""

__all__: list[str] = []

"""
Transport module - single-request HTTP access to the search service.
"""

from scroll_exporter.transport.client import HttpTransport, TransportResponse

__all__ = [
    "HttpTransport",
    "TransportResponse",
]

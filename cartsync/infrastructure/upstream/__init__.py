"""
Upstream store adapters
"""

from .snapshot_parser import extract_server_addons, parse_cart_snapshot
from .store_api_client import UpstreamCartClient, build_http_client

__all__ = ["UpstreamCartClient", "build_http_client", "extract_server_addons", "parse_cart_snapshot"]

"""
Infrastructure layer

Adapters for storage, the upstream store, caching, configuration and logging.
"""

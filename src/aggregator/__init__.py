"""Multi-provider asset metadata aggregator with caching, querying and change broadcast."""

__version__ = "0.1.0"

"""Building blocks for web crawlers: requests, responses, XPath extraction, limits, proxies and queues."""

__version__ = "0.1.0"
"""Price feed aggregation service.

Polls an external price source, caches the latest value and history per
asset, evaluates threshold alerts, broadcasts updates and serves a derived
yield rate over HTTP.
"""

__version__ = "0.1.0"

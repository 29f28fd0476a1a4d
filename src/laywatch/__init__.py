"""laywatch: opening-price anchoring and Kelly lay sizing for racing exchanges."""

__version__ = "0.1.0"

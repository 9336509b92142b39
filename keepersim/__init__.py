"""Building blocks for simulating offchain-reporting keeper networks."""

__version__ = "0.1.0"
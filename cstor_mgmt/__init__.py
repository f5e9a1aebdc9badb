"""Node-local cStor pool, replica and volume target controllers."""

__version__ = "0.1.0"

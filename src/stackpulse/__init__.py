"""StackPulse - Stacks chainhook ingestion and notification fan-out."""

__version__ = "1.0.0"

"""SpecKit Studio - specification workflow orchestrator."""

__version__ = "0.1.0"

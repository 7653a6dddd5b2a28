"""weightbench - runtime weight benchmark campaign orchestrator."""

__version__ = "0.3.0"

"""QOS quality report KPI engine."""

__version__ = "0.1.0"

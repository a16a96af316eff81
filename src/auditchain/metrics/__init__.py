from .metrics import ChainMetrics, ChainMetricsSnapshot

__all__ = ["ChainMetrics", "ChainMetricsSnapshot"]

from .metrics import ControllerMetrics, measure_reconcile, start_metrics_server

__all__ = ["ControllerMetrics", "measure_reconcile", "start_metrics_server"]

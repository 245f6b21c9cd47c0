from osss.metrics.summary import collect_metrics, write_metrics

__all__ = ["collect_metrics", "write_metrics"]

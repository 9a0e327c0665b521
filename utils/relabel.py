"""Relabel config snippets.

The analyzers attach these strings to findings so users can copy them
straight into a ServiceMonitor/PodMonitor `metricRelabelings` block. The
keys, the action names and the quoted literal regex are a compatibility
surface: Prometheus rejects or silently ignores anything else.
"""


def drop_metric_snippet(metric: str) -> str:
    """Relabel rule that drops every series of one metric.

    Args:
        metric: Exact metric name. Used as a literal regex; metric names
            contain no regex metacharacters.

    Returns:
        A YAML list item using `action: drop` on `__name__`.
    """
    return f'- sourceLabels: [__name__]\n  regex: "{metric}"\n  action: drop'


def labeldrop_snippet(label: str) -> str:
    """Relabel rule that removes one label from every series."""
    return f'- action: labeldrop\n  regex: "{label}"'

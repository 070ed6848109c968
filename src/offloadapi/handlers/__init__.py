"""
Built-in request handlers that are not resource controllers.
"""

from .monitoring import MonitoringEndpoints, classify_threads, runtime_figures

__all__ = [
    "MonitoringEndpoints",
    "classify_threads",
    "runtime_figures",
]

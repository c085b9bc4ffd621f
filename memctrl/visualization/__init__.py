"""
Memory controller visualization.

- plot_grant_timeline: request grants and response-bus ownership per cycle
- plot_queue_occupancy: assembler queues and backend read occupancy

Note: Chart functions require matplotlib and are lazy-loaded.
"""


def __getattr__(name):
    """Lazy import for matplotlib-dependent modules."""
    if name in ("TimelineConfig", "plot_grant_timeline", "plot_queue_occupancy"):
        from .timeline import TimelineConfig, plot_grant_timeline, plot_queue_occupancy
        return {"TimelineConfig": TimelineConfig,
                "plot_grant_timeline": plot_grant_timeline,
                "plot_queue_occupancy": plot_queue_occupancy}[name]

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "TimelineConfig",
    "plot_grant_timeline",
    "plot_queue_occupancy",
]

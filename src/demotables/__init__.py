"""
DemoTables - CS2 demo event streams to relational tables

Replays a CS2 demo as an ordered event stream and extracts five staging
tables for offline analysis: per-tick player snapshots, deaths, weapon
fire, utility lifecycle and bomb lifecycle.

Usage:
    from demotables import convert_demo

    result = convert_demo("match.dem")
    print(result.row_counts)
"""

__version__ = "0.3.0"
__author__ = "DemoTables Contributors"


def __getattr__(name):
    """Lazy import for heavy dependencies."""
    if name == "convert_demo":
        from demotables.pipeline import convert_demo
        return convert_demo
    elif name == "run_stream":
        from demotables.pipeline import run_stream
        return run_stream
    elif name == "CorrelationEngine":
        from demotables.engine import CorrelationEngine
        return CorrelationEngine
    elif name == "MatchPhaseTracker":
        from demotables.engine import MatchPhaseTracker
        return MatchPhaseTracker
    elif name == "DemoEventSource":
        from demotables.parser import DemoEventSource
        return DemoEventSource
    elif name == "ScriptedEventSource":
        from demotables.core.stream import ScriptedEventSource
        return ScriptedEventSource
    raise AttributeError(f"module 'demotables' has no attribute '{name}'")


__all__ = [
    # Version
    "__version__",
    # Pipeline
    "convert_demo",
    "run_stream",
    # Engine
    "CorrelationEngine",
    "MatchPhaseTracker",
    # Sources
    "DemoEventSource",
    "ScriptedEventSource",
]

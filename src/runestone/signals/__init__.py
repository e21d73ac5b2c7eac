"""
Signal collection for Runestone.

Signals are typed facts about the target project (file markers, declared
tech stack) and the task request (keywords, mode) that drive matching.
"""

from runestone.signals.collector import (
    DEFAULT_MODE_KEYWORDS,
    SignalCollector,
    collect,
    infer_mode,
    read_declared_stack,
    tokenize,
)
from runestone.signals.markers import (
    BUILTIN_MARKERS,
    MarkerCheck,
    load_marker_file,
    merge_markers,
)
from runestone.signals.types import ProjectSignals, SignalCollectionWarning

__all__ = [
    "BUILTIN_MARKERS",
    "DEFAULT_MODE_KEYWORDS",
    "MarkerCheck",
    "ProjectSignals",
    "SignalCollectionWarning",
    "SignalCollector",
    "collect",
    "infer_mode",
    "load_marker_file",
    "merge_markers",
    "read_declared_stack",
    "tokenize",
]

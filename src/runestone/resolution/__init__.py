"""
Resolution pipeline.

Turns a catalog and project signals into an ordered directive bundle:
match -> expand -> resolve -> sequence.
"""

from runestone.resolution.bundle import BundleEntry, ResolvedBundle
from runestone.resolution.engine import ResolutionEngine, run_pipeline
from runestone.resolution.expander import expand
from runestone.resolution.matcher import TriggerMatcher, explain, match
from runestone.resolution.resolver import DroppedUnit, Resolution, resolve
from runestone.resolution.sequencer import sequence

__all__ = [
    "BundleEntry",
    "DroppedUnit",
    "Resolution",
    "ResolutionEngine",
    "ResolvedBundle",
    "TriggerMatcher",
    "expand",
    "explain",
    "match",
    "resolve",
    "run_pipeline",
    "sequence",
]

"""
Pre-flight stages, in the order the runner executes them.
"""

from .assertions import AssertionsStage
from .base import PreflightStage, StageContext
from .bootstrap import BootstrapStage
from .diff import DiffStage
from .synth import SynthStage
from .topology import TOPOLOGY_CHECKS, TopologyStage

__all__ = [
    "PreflightStage",
    "StageContext",
    "BootstrapStage",
    "SynthStage",
    "AssertionsStage",
    "TopologyStage",
    "TOPOLOGY_CHECKS",
    "DiffStage",
]

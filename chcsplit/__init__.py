"""
chcsplit: instance splitting and entry point reconstruction for
Constrained Horn Clause solving.
"""

from .candidates import CandidateAccumulator
from .config import ChcSplitConfig, ReconstructionConfig, SplitConfig
from .data.sample import UNKNOWN, Sample
from .errors import (
    ChcSplitError,
    IllegalClause,
    ReconstructionError,
    SplitError,
    UnknownSample,
    UnreconstructableSample,
)
from .instance.model import Instance
from .split import NO_MODEL, SplitDriver, UnsatVerdict, work
from .unsat_core.entry_points import Entry, EntryPointRegistry
from .unsat_core.reconstruct import ProofReconstructor

__version__ = "0.1.0"

__all__ = [
    "CandidateAccumulator",
    "ChcSplitConfig",
    "ChcSplitError",
    "Entry",
    "EntryPointRegistry",
    "IllegalClause",
    "Instance",
    "NO_MODEL",
    "ProofReconstructor",
    "ReconstructionConfig",
    "ReconstructionError",
    "Sample",
    "SplitConfig",
    "SplitDriver",
    "SplitError",
    "UNKNOWN",
    "UnknownSample",
    "UnreconstructableSample",
    "UnsatVerdict",
    "work",
]

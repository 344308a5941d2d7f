"""Entry points and proof reconstruction."""

from .entry_points import Entry, EntryPointRegistry
from .reconstruct import ProofReconstructor, safe_predicates

__all__ = ["Entry", "EntryPointRegistry", "ProofReconstructor", "safe_predicates"]

"""
Entry point extraction data.

Keeps track of the dependencies between positive samples discovered while
solving: *real* positive samples are known to hold directly (they come from
positive clauses); any other positive sample maps to the set of real
samples it was derived from.  When a contradiction must be explained, the
real samples behind it are the *entry points* of the proof.
"""

from __future__ import annotations

import logging
from collections.abc import Set as AbstractSet
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Set

from ..config import ReconstructionConfig
from ..data.sample import Sample, sorted_samples
from ..errors import UnknownSample
from ..instance.model import Instance
from ..oracle import OraclePool
from .reconstruct import ProofReconstructor

logger = logging.getLogger(__name__)

SampleSet = FrozenSet[Sample]


class EntryPointRegistry:
    """
    Real positive samples and the dependencies of derived ones.

    Invariant: every sample in a stored dependency set is real.
    """

    def __init__(self):
        self.real_pos_samples: Set[Sample] = set()
        self.pos_sample_map: Dict[Sample, SampleSet] = {}

    def register(self, sample: Sample) -> None:
        """Registers a real positive sample."""
        self.real_pos_samples.add(sample)

    def is_real(self, sample: Sample) -> bool:
        return sample in self.real_pos_samples

    def register_dependency(self, sample: Sample, dep: Sample) -> None:
        """
        Registers that ``sample`` (the RHS of an implication constraint)
        depends on the positive sample ``dep``.

        The real samples behind ``dep`` are added to the dependency set of
        ``sample``; registering several dependencies for the same sample
        accumulates them.
        """
        if dep in self.real_pos_samples:
            deps = frozenset((dep,))
        elif dep in self.pos_sample_map:
            deps = self.pos_sample_map[dep]
        else:
            raise UnknownSample(dep, "register dependency to")
        prev = self.pos_sample_map.get(sample)
        if prev is not None:
            logger.debug(f"adding dependencies to {sample}")
            deps = prev | deps
        self.pos_sample_map[sample] = deps

    def entry_points_of(self, sample: Sample) -> "Entry":
        """Retrieves the real positive samples corresponding to a sample."""
        if sample in self.real_pos_samples:
            return Entry(frozenset((sample,)))
        try:
            return Entry(self.pos_sample_map[sample])
        except KeyError:
            raise UnknownSample(sample, "recover entry points for") from None

    def copy(self) -> "EntryPointRegistry":
        registry = EntryPointRegistry()
        registry.real_pos_samples = set(self.real_pos_samples)
        registry.pos_sample_map = dict(self.pos_sample_map)
        return registry

    def to_string(self, instance: Instance) -> str:
        lines = ["real_pos_samples:"]
        for sample in sorted_samples(self.real_pos_samples):
            lines.append(f"  {sample.to_string(instance)}")
        lines.append("pos_sample_map:")
        for sample in sorted_samples(self.pos_sample_map):
            lines.append(f"  {sample.to_string(instance)}")
            for dep in sorted_samples(self.pos_sample_map[sample]):
                lines.append(f"  -> {dep.to_string(instance)}")
        return "\n".join(lines)


class Entry:
    """Positive samples leading to a contradiction."""

    def __init__(self, samples: Iterable[Sample] = ()):
        self.samples: SampleSet = frozenset(samples)

    def __iter__(self) -> Iterator[Sample]:
        return iter(sorted_samples(self.samples))

    def __len__(self) -> int:
        return len(self.samples)

    def __contains__(self, sample: Sample) -> bool:
        return sample in self.samples

    def __eq__(self, other) -> bool:
        if isinstance(other, Entry):
            return self.samples == other.samples
        if isinstance(other, AbstractSet):
            return self.samples == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.samples)

    def __repr__(self) -> str:
        return "Entry({})".format(", ".join(str(s) for s in self))

    def rewrite(self, instance: Instance) -> List[Sample]:
        """Rewrites the entry points in terms of the original signatures."""
        return [sample.to_original(instance.preds[sample.pred]) for sample in self]

    def reconstruct(
        self,
        instance: Instance,
        original: Instance,
        pool: Optional[OraclePool] = None,
        config: Optional[ReconstructionConfig] = None,
    ) -> "Entry":
        """Reconstructs the entry points in terms of the original instance."""
        samples = self.rewrite(instance)
        logger.debug(f"reconstructing {len(samples)} sample(s)")
        if config is None:
            config = ReconstructionConfig()
        if pool is None:
            pool = OraclePool(config.timeout_ms)
        with pool.session(config.solver_name) as session:
            result = ProofReconstructor(original, instance, samples, session).run()
        return Entry(result)

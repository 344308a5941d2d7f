"""CHC instances and split preprocessing."""

from .model import (
    Clause,
    ClauseHandle,
    Exclusive,
    Instance,
    Predicate,
    PredicateDefinition,
    PredicateDefinitions,
    PredicateHandle,
    Shared,
)
from .preproc import Preprocessor, SplitPreprocessor, TrivialModel

__all__ = [
    "Clause",
    "ClauseHandle",
    "Exclusive",
    "Instance",
    "Predicate",
    "PredicateDefinition",
    "PredicateDefinitions",
    "PredicateHandle",
    "Preprocessor",
    "Shared",
    "SplitPreprocessor",
    "TrivialModel",
]

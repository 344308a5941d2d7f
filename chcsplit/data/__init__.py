"""Ground data: samples and sample values."""

from .sample import UNKNOWN, Sample, sorted_samples

__all__ = ["UNKNOWN", "Sample", "sorted_samples"]

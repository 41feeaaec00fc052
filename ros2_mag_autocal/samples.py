from collections import namedtuple

import numpy as np

from .quaternion import Quaternion

# A sphere through the magnetometer readings needs exactly four points
SAMPLE_CAPACITY = 4


class Sample(namedtuple("Sample", ["orientation", "field"])):
    """(orientation, magnetic field) pair, immutable once created."""
    __slots__ = ()

    def __new__(cls, orientation, field):
        field = np.array(field, dtype=float).reshape(3,)
        field.setflags(write=False)
        return super().__new__(cls, Quaternion(orientation), field)


class SampleBuffer:
    """
    Fixed capacity store for the calibration samples.

    Slot 0 always holds the first accepted sample; samples are only ever
    appended, and the whole buffer is dropped with clear().
    """
    def __init__(self, capacity=SAMPLE_CAPACITY):
        self.capacity = capacity
        self._samples = []

    def clear(self):
        self._samples = []

    def append(self, sample):
        if self.is_full:
            raise ValueError(f"Sample buffer is full ({self.capacity} samples)")
        self._samples.append(sample)

    @property
    def count(self):
        return len(self._samples)

    @property
    def is_full(self):
        return len(self._samples) >= self.capacity

    def fields(self):
        return [s.field for s in self._samples]

    def orientations(self):
        return [s.orientation for s in self._samples]

    def __len__(self):
        return len(self._samples)

    def __getitem__(self, i):
        # slots past count hold nothing, and there is no indexing from the end
        if not 0 <= i < len(self._samples):
            raise IndexError(f"Sample index {i} out of range (count {len(self._samples)})")
        return self._samples[i]

    def __iter__(self):
        return iter(self._samples)

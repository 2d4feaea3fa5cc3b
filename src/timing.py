# timing.py
# Wall-clock timing for the sweep drivers
# - StepTimer: seconds per named step of one sweep cell, emitted as runtime_<step> columns
# - timer(label): total time of a whole driver call, printed on exit

import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, Iterable

import numpy as np


class StepTimer:
    """Times the named steps of one sweep cell (e.g. 'estimator', 'direct')."""
    def __init__(self):
        self.seconds = defaultdict(float)

    @contextmanager
    def section(self, step: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.seconds[step] += time.perf_counter() - start

    def pop_runtimes(self, steps: Iterable[str]) -> Dict[str, float]:
        """
        Return {'runtime_<step>': seconds} for the requested steps and start over.
        A step that never ran (the call raised before reaching it) is NaN.
        """
        out = {f"runtime_{s}": self.seconds.get(s, np.nan) for s in steps}
        self.seconds.clear()
        return out


@contextmanager
def timer(label: str):
    start = time.perf_counter()
    try:
        yield
    finally:
        print(f"⏱️ {label}: {time.perf_counter() - start:.2f} s")

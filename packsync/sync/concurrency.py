"""
Adaptive download concurrency.

A hill-climbing policy: add workers while throughput keeps rising, back
off when an added worker stops paying for itself. It only sees numbers,
so it can be driven by synthetic throughput traces in tests.
"""


class AdaptiveConcurrency:
    """
    Pick the next worker count from throughput samples.

    Args:
        initial: Starting worker count
        minimum: Lower bound
        maximum: Upper bound
        step: Workers added or removed per move
        tolerance: Relative change treated as noise (0.05 = 5%)
    """

    def __init__(
        self,
        initial: int = 4,
        minimum: int = 1,
        maximum: int = 32,
        step: int = 1,
        tolerance: float = 0.05,
    ):
        if minimum < 1 or maximum < minimum:
            raise ValueError(f"Invalid worker bounds: {minimum}..{maximum}")
        self.minimum = minimum
        self.maximum = maximum
        self.step = step
        self.tolerance = tolerance
        self._workers = min(max(initial, minimum), maximum)
        self._direction = 0  # last move: +1 grew, -1 shrank, 0 held
        self._last_throughput = None

    @property
    def workers(self) -> int:
        return self._workers

    def update(self, throughput: float) -> int:
        """
        Feed one throughput sample (bytes/second over the last interval).

        Returns the worker count to use for the next interval.
        """
        previous = self._last_throughput
        self._last_throughput = throughput

        if previous is None:
            direction = 1
        elif throughput > previous * (1 + self.tolerance):
            # Last move helped: keep going the same way
            direction = self._direction or 1
        elif throughput < previous * (1 - self.tolerance):
            # Last move hurt: undo it
            direction = -self._direction if self._direction else -1
        elif self._direction > 0:
            # Growing stopped paying off
            direction = -1
        elif self._direction < 0:
            direction = 0
        else:
            # Holding steady: try growing again
            direction = 1

        return self._move(direction)

    def _move(self, direction: int) -> int:
        target = min(max(self._workers + direction * self.step, self.minimum), self.maximum)
        self._direction = direction if target != self._workers else 0
        self._workers = target
        return target

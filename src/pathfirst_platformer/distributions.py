"""Event timing tables for the path sampler.

The sampler needs to decide *when* something happens (jump off a platform,
land after some time in the air), not *whether*. A ProbabilityTable maps
"frames elapsed without the event" to the chance the event fires this frame.

The unconditional timing is triangular over [minimum, maximum]: most events
happen near the middle of the range, none before the minimum, and the event
is certain by the maximum. This gives varied but bounded platform lengths
and airtimes, unlike a flat or memoryless rate.
"""

import numpy as np


class ProbabilityTable:
    """Hazard-rate table over the integer domain [minimum, maximum].

    probability(i) is 0 below minimum, rises monotonically, and is exactly 1
    at maximum and beyond.
    """

    def __init__(self, minimum: int, maximum: int):
        minimum = int(minimum)
        maximum = int(maximum)
        if minimum < 0:
            raise ValueError(f"minimum must be >= 0, got {minimum}")
        if minimum > maximum:
            raise ValueError(f"minimum {minimum} > maximum {maximum}")

        self.minimum = minimum
        self.maximum = maximum

        # Triangular mass: weight grows with distance to the nearer edge
        domain = np.arange(minimum, maximum + 1)
        weights = np.minimum(domain - minimum, maximum - domain) + 1.0

        # remaining[k] = weight strictly after domain[k]
        remaining = weights.sum() - np.cumsum(weights)
        previous = np.concatenate(([weights.sum()], remaining[:-1]))
        hazard = 1.0 - remaining / previous
        hazard[-1] = 1.0

        table = np.zeros(maximum + 1)
        table[minimum:] = hazard
        self._table = table

    @classmethod
    def from_seconds(cls, min_seconds: float, max_seconds: float, dt: float) -> "ProbabilityTable":
        """Build a table whose domain is given in seconds at a fixed step."""
        minimum = max(0, int(round(min_seconds / dt)))
        maximum = max(minimum, int(round(max_seconds / dt)))
        return cls(minimum, maximum)

    @property
    def values(self) -> np.ndarray:
        """Copy of the table, index = frames elapsed (0..maximum)."""
        return self._table.copy()

    def probability(self, frames: int) -> float:
        if frames < self.minimum:
            return 0.0
        if frames >= self.maximum:
            return 1.0
        return float(self._table[frames])

    def roll(self, frames: int, rng: np.random.Generator) -> bool:
        """Draw whether the event fires after `frames` frames without it."""
        p = self.probability(frames)
        if p <= 0.0:
            return False
        if p >= 1.0:
            return True
        return bool(rng.random() < p)

    def expected_frames(self) -> float:
        """Mean of the unconditional timing distribution."""
        return (self.minimum + self.maximum) / 2.0

    def __repr__(self) -> str:
        return f"ProbabilityTable({self.minimum}, {self.maximum})"

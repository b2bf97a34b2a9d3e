"""Path-first level generation.

Combines the pipeline pieces into one request:
- Pather: simulates the character and reserves a completable path
- MapSkinner: turns the reservations into terrain and decoration

Key design: the generator owns its configuration. The controller, pather
and skinner hold references to the same config objects, and a change goes
through update_physics()/update_pather() so the derived jump metrics and
timing tables are recomputed in order (config -> controller -> pather).
"""

import copy
import logging
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .config import GeneratorConfig, PhysicsConfig
from .pather import Pather, PathResult
from .physics import CharacterController, KinematicState
from .skinner import MapSkinner, SkinReport
from .tiles import TileGrid

logger = logging.getLogger(__name__)


@dataclass
class GeneratedLevel:
    """A finished (or failed) generation request."""
    grid: TileGrid  # Skinned level; raw reservations when the search failed
    reservation_grid: TileGrid  # Reservations as the pather left them
    path_result: PathResult
    report: Optional[SkinReport]  # None when no path was found
    seed: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.path_result.success

    @property
    def path(self) -> List[KinematicState]:
        return self.path_result.path

    @property
    def attempts(self) -> int:
        return self.path_result.attempts

    def to_text(self, show_reservations: bool = False) -> str:
        return self.grid.to_text(show_reservations=show_reservations)


class LevelGenerator:
    """Generates traversable levels for a given character.

    Args:
        config: Generation config. It is copied, so presets from CONFIGS can
            be passed directly without being modified by later updates.
    """

    def __init__(self, config: Optional[GeneratorConfig] = None):
        self.config = copy.deepcopy(config) if config is not None else GeneratorConfig()
        self.controller = CharacterController(self.config.physics)
        self.pather = Pather(self.controller, self.config.pather)
        self.skinner = MapSkinner(self.config.skinner)

    @classmethod
    def from_config(cls, config: GeneratorConfig) -> "LevelGenerator":
        """Create generator from a full generator config."""
        return cls(config)

    @property
    def physics(self) -> PhysicsConfig:
        return self.config.physics

    def _reseed(self, rng: np.random.Generator) -> None:
        # One stream per request, shared by every stage
        self.pather.rng = rng
        self.pather.policy.rng = rng
        self.skinner.rng = rng

    def update_physics(self, **changes: Any) -> None:
        """Change character parameters and refresh everything derived from them."""
        _apply(self.config.physics, changes)
        self.controller.recompute()
        self.pather.recompute()

    def update_pather(self, **changes: Any) -> None:
        """Change sampler parameters and rebuild the timing tables."""
        _apply(self.config.pather, changes)
        self.pather.recompute()

    def generate(self, seed: Optional[int] = None, attempt_limit: Optional[int] = None,
                 should_cancel: Optional[Callable[[], bool]] = None) -> GeneratedLevel:
        """Generate a level.

        Args:
            seed: Random seed for reproducibility
            attempt_limit: Overrides the pather config's attempt limit
            should_cancel: Polled between attempts; returning True stops the search

        Returns:
            GeneratedLevel. On failure the grid is left unskinned, holding
            the last attempt's reservations for inspection.

        Raises:
            ConfigurationError: if the config can never produce a level
        """
        self._reseed(np.random.default_rng(seed))

        grid = TileGrid(self.config.map.columns, self.config.map.rows)
        result = self.pather.plan(grid, attempt_limit=attempt_limit, should_cancel=should_cancel)
        reservations = grid.copy()

        if not result.success:
            logger.info("Generation failed after %d attempts (seed=%s)", result.attempts, seed)
            return GeneratedLevel(grid, reservations, result, None, seed)

        report = self.skinner.skin_map(grid, result.path, self.physics)
        logger.info("Generated %dx%d level in %d attempts (seed=%s)",
                    grid.columns, grid.rows, result.attempts, seed)
        return GeneratedLevel(grid, reservations, result, report, seed)


def _apply(target, changes: Dict[str, Any]) -> None:
    names = {f.name for f in fields(target) if f.init}
    unknown = set(changes) - names
    if unknown:
        raise ValueError(f"Unknown {type(target).__name__} fields: {sorted(unknown)}")
    for name, value in changes.items():
        setattr(target, name, value)


def generate_level(
    config: Optional[GeneratorConfig] = None,
    seed: Optional[int] = None,
) -> GeneratedLevel:
    """One-shot convenience wrapper around LevelGenerator."""
    return LevelGenerator(config).generate(seed)

"""Turn a reserved grid into a finished level.

The Pather leaves two kinds of marker: floors the character landed on
(SOLID_RESERVATION) and cells its body passed through (PLAYER_RESERVATION).
MapSkinner rewrites them into terrain and decorates around the path. Nothing
solid is ever placed on a player reservation, so the path stays completable.

Passes, in order:
1. Column scan, bottom to top: floors become terrain, with power-ups, enemies
   and coins placed by height above the nearest floor
2. Platform extension left/right of the floors found in the scan
3. Coin arcs along the larger jumps of the recorded path
4. Leftover reservations cleared, start and goal markers placed
"""

import logging
import math
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .config import PhysicsConfig, SkinnerConfig
from .physics import KinematicState
from .tiles import Tile, TileGrid

logger = logging.getLogger(__name__)

_OPEN = (Tile.NONE, Tile.PLAYER_RESERVATION)


@dataclass
class SkinReport:
    """What a skinning pass placed."""
    floor_tiles: int = 0
    terrain_tiles: int = 0
    extensions: int = 0
    power_ups: int = 0
    enemies: int = 0
    coins: int = 0
    arc_coins: int = 0
    arcs: int = 0
    cleared_reservations: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def airborne_segments(path: Sequence[KinematicState]) -> List[Tuple[int, int]]:
    """Index pairs (launch, landing) for each airborne stretch of a path.

    `launch` is the last grounded state before leaving the surface and
    `landing` the first grounded state after. Stretches still airborne at
    the end of the path are dropped.
    """
    segments = []
    launch = None
    for i, state in enumerate(path):
        if state.frames_since_ground == 0:
            if launch is not None and i - launch > 1:
                segments.append((launch, i))
            launch = i
    return segments


class MapSkinner:
    """Converts reservation tiles into level content."""

    def __init__(self, config: Optional[SkinnerConfig] = None, rng: Optional[np.random.Generator] = None):
        self.config = config or SkinnerConfig()
        self.rng = rng if rng is not None else np.random.default_rng()

    def _chance(self, probability: float) -> bool:
        if probability <= 0.0:
            return False
        return bool(self.rng.random() < probability)

    def skin_map(self, grid: TileGrid, path: Sequence[KinematicState], physics: PhysicsConfig) -> SkinReport:
        """Rewrite `grid` in place and report what was placed."""
        report = SkinReport()

        floors = self.scan_columns(grid, physics, report)
        self.extend_platforms(grid, floors, report)
        self.place_arc_coins(grid, path, report)

        report.cleared_reservations = grid.replace(Tile.PLAYER_RESERVATION, Tile.NONE)

        if self.config.place_markers:
            grid.prep_start_end()

        logger.debug("Skinned %r: %s", grid, report)
        return report

    # ------------------------------------------------------------------
    # Pass 1: column scan
    # ------------------------------------------------------------------

    def scan_columns(self, grid: TileGrid, physics: PhysicsConfig, report: SkinReport) -> List[Tuple[int, int]]:
        """Convert floors and decorate above them, one column at a time.

        Returns every floor position converted, for the extension pass.
        """
        cfg = self.config
        columns, rows = grid.get_dimensions()
        power_up_height = int(round(physics.jump_height + physics.height))
        last_enemy: Dict[int, int] = {}
        floors = []

        for x in range(columns):
            found_content = False
            distance = math.inf

            for y in range(rows - 1, -1, -1):
                distance += 1
                tile = grid.get_tile_at(x, y)

                if tile is Tile.SOLID_RESERVATION:
                    # The lowest floor in a column is supported down to the map floor
                    bottom = y if found_content else rows - 1
                    grid.fill(Tile.SOLID, x, y, x, bottom)
                    report.floor_tiles += 1
                    report.terrain_tiles += bottom - y
                    floors.append((x, y))
                    distance = 0

                elif (distance == power_up_height and tile is Tile.NONE
                        and cfg.edge_margin <= x < columns - cfg.edge_margin
                        and self._chance(cfg.power_up_probability)):
                    grid.place(Tile.EXCLAMATION_BOX, x, y)
                    report.power_ups += 1

                elif distance == 1 and tile in _OPEN:
                    if self._enemy_fits(grid, x, y, last_enemy) and self._chance(cfg.enemy_probability):
                        grid.place(Tile.PINK_SLIME, x, y)
                        last_enemy[y] = x
                        report.enemies += 1
                    elif self._chance(cfg.coin_probability):
                        grid.place(Tile.COIN, x, y)
                        report.coins += 1

                if tile is not Tile.NONE:
                    found_content = True

        return floors

    def _enemy_fits(self, grid: TileGrid, x: int, y: int, last_enemy: Dict[int, int]) -> bool:
        """An enemy needs room above to be stomped, and space from the last one."""
        above = grid.get_tile_at(x, y - 1)
        if self.config.enemy_requires_path_above:
            if above is not Tile.PLAYER_RESERVATION:
                return False
        elif y - 1 < 0 or above.is_solid:
            return False

        previous = last_enemy.get(y)
        return previous is None or x - previous > self.config.enemy_spacing

    # ------------------------------------------------------------------
    # Pass 2: platform extension
    # ------------------------------------------------------------------

    def extend_platforms(self, grid: TileGrid, floors: List[Tuple[int, int]], report: SkinReport) -> None:
        """Randomly widen floors by one tile on either side.

        A neighbour is only filled when empty and when the tile beyond it is
        not solid, so gaps the path jumps across are never closed.
        """
        rows = grid.rows
        for x, y in floors:
            for dx in (-1, 1):
                nx = x + dx
                if not grid.in_bounds(nx, y) or grid.get_tile_at(nx, y) is not Tile.NONE:
                    continue
                if grid.is_solid(nx + dx, y):
                    continue
                if not self._chance(self.config.platform_extend_probability):
                    continue

                supported = any(grid.get_tile_at(nx, below) is not Tile.NONE
                                for below in range(y + 1, rows))
                bottom = y if supported else rows - 1
                grid.fill(Tile.SOLID, nx, y, nx, bottom)
                report.extensions += 1

    # ------------------------------------------------------------------
    # Pass 3: coin arcs
    # ------------------------------------------------------------------

    def place_arc_coins(self, grid: TileGrid, path: Sequence[KinematicState], report: SkinReport) -> None:
        """Coins along jump arcs, where the path passes close to a tile centre."""
        cfg = self.config
        for launch, landing in airborne_segments(path):
            start, end = path[launch], path[landing]
            if max(abs(end.x - start.x), abs(end.y - start.y)) < cfg.min_arc_displacement:
                continue
            report.arcs += 1

            for state in path[launch + 1:landing]:
                cx, cy = int(round(state.x)), int(round(state.y))
                if max(abs(state.x - cx), abs(state.y - cy)) >= cfg.arc_center_tolerance:
                    continue
                if grid.in_bounds(cx, cy) and grid.get_tile_at(cx, cy) in _OPEN:
                    grid.place(Tile.COIN, cx, cy)
                    report.arc_coins += 1

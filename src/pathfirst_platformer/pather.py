"""Path generation: a random walk that obeys the character's physics.

The Pather plays the level before it exists. Each attempt simulates the
character frame by frame from the left edge, driven by MarkovPolicy. Floors
are reserved under the character only when it needs one, and every cell the
character's body passes through is reserved as open space. If the character
reaches the right edge on solid footing, the reservations in the grid are a
level that is known to be completable.

A failed attempt is routine: the grid is cleared and a new attempt starts
with fresh random rolls. Attempts fail when they run out of simulated time,
fall out of the map, or need a floor across cells the path already used.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Tuple

import numpy as np

from .config import PatherConfig, PhysicsConfig
from .constraints import (
    ConfigurationError,
    ConstraintResult,
    ConstraintViolation,
    ParameterConstraints,
    fall_limit,
    jump_limit,
)
from .distributions import ProbabilityTable
from .physics import CharacterController, CollisionResult, KinematicState
from .policies import MarkovPolicy
from .tiles import Tile, TileGrid

logger = logging.getLogger(__name__)


@dataclass
class PathResult:
    """Outcome of a generation request.

    `path` holds the successful path, or the last failed attempt when no
    attempt succeeded, so a failure can still be drawn for debugging.
    """
    success: bool
    path: List[KinematicState] = field(default_factory=list)
    attempts: int = 0
    cancelled: bool = False

    @property
    def successful_path(self) -> Optional[List[KinematicState]]:
        return self.path if self.success else None

    @property
    def last_attempt(self) -> List[KinematicState]:
        """Path of the most recent attempt, successful or not."""
        return self.path

    def __bool__(self) -> bool:
        return self.success


class Pather:
    """Samples completable paths and reserves their tiles in a grid.

    The controller's config is shared: after changing it, call
    controller.recompute() and then recompute() here so both timing tables
    follow the new jump metrics.
    """

    def __init__(
        self,
        controller: CharacterController,
        config: Optional[PatherConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.controller = controller
        self.config = config or PatherConfig()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.result: Optional[PathResult] = None
        self.recompute()

    @property
    def physics(self) -> PhysicsConfig:
        return self.controller.config

    def recompute(self) -> None:
        """Rebuild the timing tables and policy from the current configs."""
        physics = self.physics
        cfg = self.config

        # Frames spent on a platform before jumping off or walking off it
        min_seconds = max(cfg.min_seconds_on_platform, 0.0)
        self.jump_table = ProbabilityTable.from_seconds(
            min_seconds, max(cfg.max_seconds_on_platform, min_seconds), physics.dt)

        # Frames airborne before landing. Centred on a landing at launch
        # height; height_variance widens it toward higher and lower landings.
        peak = physics.peak_frames
        fall = physics.fall_frames
        spread = min(max(cfg.height_variance, 0.0), 1.0)
        low = max(1, int(round(peak + (1.0 - spread) * fall)))
        high = max(low, int(round(peak + (1.0 + spread) * fall)))
        self.landing_table = ProbabilityTable(low, high)

        # Walk-off falls behave like the second half of a jump
        self.walk_off_offset = peak

        self.jump_limit = jump_limit(physics)
        self.policy = MarkovPolicy(physics, cfg, self.jump_table, self.jump_limit, self.rng)

    # ------------------------------------------------------------------
    # Generation requests
    # ------------------------------------------------------------------

    def plan(
        self,
        grid: TileGrid,
        attempt_limit: Optional[int] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> PathResult:
        """Search for a completable path, leaving its reservations in `grid`.

        Raises ConfigurationError if the request can never succeed. Running
        out of attempts is not an error: the result has success=False and
        keeps the last attempt's path.
        """
        if attempt_limit is None:
            attempt_limit = self.config.attempt_limit

        columns, rows = grid.get_dimensions()
        check = ParameterConstraints.validate_request(columns, rows, self.physics, self.config)
        if attempt_limit < 1:
            check = ConstraintResult(False, check.violations + [ConstraintViolation(
                "attempt_limit", f"Attempt limit {attempt_limit} < 1", "error")])
        if not check:
            raise ConfigurationError(check)
        for warning in check.warnings:
            logger.warning("%s: %s", warning.param, warning.message)

        self.policy.reset()
        path: List[KinematicState] = []
        attempts = 0
        for attempts in range(1, attempt_limit + 1):
            if should_cancel is not None and should_cancel():
                logger.info("Path search cancelled after %d attempts", attempts - 1)
                return PathResult(False, path, attempts - 1, cancelled=True)

            grid.clear()
            success, path = self.run_attempt(grid)
            if success:
                logger.info("Found path in %d frames on attempt %d", len(path), attempts)
                return PathResult(True, path, attempts)
            logger.debug("Attempt %d failed after %d frames at x=%.2f",
                         attempts, len(path), path[-1].x)

        logger.warning("No path found in %d attempts on a %dx%d map",
                       attempt_limit, columns, rows)
        return PathResult(False, path, attempts)

    def plan_path(self, grid: TileGrid, attempt_limit: Optional[int] = None) -> bool:
        """Like plan(), but keeps the result on the pather and returns success."""
        self.result = self.plan(grid, attempt_limit)
        return self.result.success

    @property
    def successful_path(self) -> Optional[List[KinematicState]]:
        return self.result.successful_path if self.result else None

    @property
    def last_attempt(self) -> Optional[List[KinematicState]]:
        return self.result.last_attempt if self.result else None

    # ------------------------------------------------------------------
    # One attempt
    # ------------------------------------------------------------------

    def solid_query(self, grid: TileGrid) -> Callable[[int, int], bool]:
        """Only floors reserved so far block the character.

        The side walls and the space above the map are solid; below the map
        is open so a character can fall out.
        """
        columns = grid.columns

        def is_solid(x: int, y: int) -> bool:
            if x < 0 or x >= columns or y < 0:
                return True
            return grid.get_tile_at(x, y) is Tile.SOLID_RESERVATION

        return is_solid

    def start_row(self, rows: int) -> int:
        """Random standing row between the jump ceiling and the fall limit."""
        top = self.jump_limit
        bottom = fall_limit(rows, self.config)
        return top + int(self.rng.integers(bottom - top))

    def run_attempt(self, grid: TileGrid):
        """Simulate one attempt on a cleared grid.

        Returns (success, path).
        """
        physics = self.physics
        controller = self.controller
        columns, rows = grid.get_dimensions()
        lowest = fall_limit(rows, self.config)
        is_solid = self.solid_query(grid)

        row = self.start_row(rows)
        grid.place(Tile.SOLID_RESERVATION, 0, row + 1)
        state = controller.start_state(0, row + 1)
        self.mark_footprint(grid, controller.handle_collision(state, is_solid))
        path = [state]

        air_offset = 0
        frame_budget = int(round(self.config.seconds_budget / physics.dt))
        for _ in range(frame_budget):
            inp = self.policy(state)
            jumped = inp.jump and physics.can_jump and state.is_on_ground(physics.coyote_frames)

            resolved = controller.handle_collision(controller.step(state, inp), is_solid)
            new_state = resolved.state

            if jumped:
                air_offset = 0

            floor_row, air_offset = self.choose_floor_row(state, resolved, air_offset, lowest)
            if floor_row is not None:
                landed = self.place_floor(grid, resolved, floor_row, lowest, is_solid)
                if landed is None:
                    logger.debug("Floor at row %d would cover the path at x=%.2f",
                                 floor_row, new_state.x)
                    path.append(new_state)
                    return False, path
                resolved = landed
                new_state = resolved.state

            if resolved.top >= rows:
                # Fell out of the map
                path.append(new_state)
                return False, path

            self.mark_footprint(grid, resolved)
            path.append(new_state)
            state = new_state

            if state.x >= columns - 1 and state.is_on_ground():
                return True, path

        return False, path

    def choose_floor_row(
        self,
        previous: KinematicState,
        resolved: CollisionResult,
        air_offset: int,
        lowest: int,
    ) -> Tuple[Optional[int], int]:
        """Decide whether a descending character gets a floor this frame.

        Returns (floor_row, air_offset); floor_row is None when the character
        keeps falling.
        """
        state = resolved.state
        if state.is_on_ground() or state.vel_y <= 0:
            return None, air_offset

        if previous.frames_since_ground == 0:
            # Just left a surface without jumping. Floors at the fall limit
            # are always extended.
            resting_row = previous.bottom_tile(self.controller.height) + 1
            drop = (state.x >= self.config.jump_free_columns
                    and resting_row < lowest
                    and self.jump_table.roll(previous.frames_on_ground, self.rng))
            if drop:
                return None, self.walk_off_offset
            return resting_row, air_offset

        frames = state.frames_since_ground + air_offset
        if resolved.bottom >= lowest or self.landing_table.roll(frames, self.rng):
            return resolved.bottom + 1, air_offset
        return None, air_offset

    def place_floor(
        self,
        grid: TileGrid,
        resolved: CollisionResult,
        floor_row: int,
        lowest: int,
        is_solid: Callable[[int, int], bool],
    ) -> Optional[CollisionResult]:
        """Reserve floor under the footprint, then land the character on it.

        Open-space reservations inside the bottom margin are left open. Above
        the margin a floor may not cover them: the path already passed
        through those cells, so None is returned and the grid is untouched.
        """
        span = range(resolved.left, resolved.right + 1)
        if floor_row < lowest and any(
                grid.get_tile_at(x, floor_row) is Tile.PLAYER_RESERVATION for x in span):
            return None

        placed = False
        for x in span:
            if grid.get_tile_at(x, floor_row) is Tile.PLAYER_RESERVATION:
                continue
            if grid.in_bounds(x, floor_row):
                grid.place(Tile.SOLID_RESERVATION, x, floor_row)
                placed = True
        if not placed:
            return resolved

        # Move the character so its bottom edge sits in the floor row and
        # resolve again; the vertical pass snaps it on top.
        state = resolved.state
        lowered = replace(state, y=state.y + (floor_row - resolved.bottom))
        landed = self.controller.handle_collision(lowered, is_solid)
        if landed.state.frames_since_ground != 0:
            return resolved
        return landed

    @staticmethod
    def mark_footprint(grid: TileGrid, resolved: CollisionResult) -> None:
        """Reserve every cell the character occupies as open space."""
        grid.fill(
            lambda x, y: (Tile.SOLID_RESERVATION
                          if grid.get_tile_at(x, y) is Tile.SOLID_RESERVATION
                          else Tile.PLAYER_RESERVATION),
            resolved.left, resolved.top, resolved.right, resolved.bottom,
        )

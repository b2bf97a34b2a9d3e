"""Tests for the path sampler."""

import numpy as np
import pytest

from pathfirst_platformer.config import PatherConfig, PhysicsConfig
from pathfirst_platformer.constraints import ConfigurationError, fall_limit
from pathfirst_platformer.pather import Pather, PathResult
from pathfirst_platformer.physics import CharacterController, CollisionResult, KinematicState
from pathfirst_platformer.tiles import Tile, TileGrid


def _pather(physics=None, seed=0, **pather_kwargs):
    controller = CharacterController(physics or PhysicsConfig())
    return Pather(controller, PatherConfig(**pather_kwargs), np.random.default_rng(seed))


def _rests_on_reserved_floor(state, grid, height=0.99, width=0.99):
    below = state.bottom_tile(height) + 1
    return any(grid.get_tile_at(x, below) is Tile.SOLID_RESERVATION
               for x in range(state.left_tile(), state.right_tile(width) + 1))


class TestPathResult:
    def test_success(self):
        path = [KinematicState(x=0.0, y=0.0)]
        result = PathResult(True, path, attempts=2)
        assert result
        assert result.successful_path is path
        assert result.last_attempt is path

    def test_failure_keeps_last_attempt(self):
        path = [KinematicState(x=0.0, y=0.0)]
        result = PathResult(False, path, attempts=5)
        assert not result
        assert result.successful_path is None
        assert result.last_attempt is path


class TestRecompute:
    def test_jump_table_from_platform_seconds(self, pather):
        assert pather.jump_table.minimum == 10
        assert pather.jump_table.maximum == 40

    def test_landing_table_brackets_level_landing(self, pather, physics_config):
        level_landing = physics_config.peak_frames + physics_config.fall_frames
        assert pather.landing_table.minimum <= level_landing <= pather.landing_table.maximum

    def test_no_height_variance(self):
        pather = _pather(height_variance=0.0)
        assert pather.landing_table.minimum == pather.landing_table.maximum

    def test_jump_limit(self, pather):
        assert pather.jump_limit == 5

    def test_follows_physics_changes(self, pather, controller):
        controller.config.jump_height = 2.0
        controller.recompute()
        pather.recompute()
        assert pather.jump_limit == 3
        assert pather.walk_off_offset == controller.config.peak_frames
        assert pather.policy.jump_limit == 3

    def test_grounded_landing_table(self):
        pather = _pather(physics=PhysicsConfig(jump_height=0.0))
        assert pather.walk_off_offset == 0
        assert pather.landing_table.minimum == 1


class TestSolidQuery:
    def test_walls_and_ceiling(self, pather, grid):
        is_solid = pather.solid_query(grid)
        assert is_solid(-1, 5)
        assert is_solid(grid.columns, 5)
        assert is_solid(5, -1)
        # Open below the map
        assert not is_solid(5, grid.rows)

    def test_only_floor_reservations_block(self, pather, grid):
        grid.place(Tile.SOLID_RESERVATION, 1, 1)
        grid.place(Tile.PLAYER_RESERVATION, 2, 1)
        is_solid = pather.solid_query(grid)
        assert is_solid(1, 1)
        assert not is_solid(2, 1)
        assert not is_solid(3, 1)


class TestStartRow:
    def test_between_limits(self, pather):
        rows = {pather.start_row(20) for _ in range(200)}
        assert min(rows) >= 5
        assert max(rows) < 17


class TestMarkFootprint:
    def test_keeps_floors(self):
        grid = TileGrid(4, 4).place(Tile.SOLID_RESERVATION, 1, 2)
        Pather.mark_footprint(grid, CollisionResult(KinematicState(x=1.0, y=1.0), False, 1, 2, 1, 2))
        assert grid.get_tile_at(1, 2) is Tile.SOLID_RESERVATION
        assert grid.count(Tile.PLAYER_RESERVATION) == 3


def _falling(pather, controller, grid, x, y):
    state = KinematicState(x=x, y=y, vel_y=2.0, frames_since_ground=5, frames_on_ground=0)
    return controller.handle_collision(state, pather.solid_query(grid))


class TestChooseFloorRow:
    LOWEST = 17

    def _resolve(self, pather, controller, grid, **state_kwargs):
        return controller.handle_collision(KinematicState(**state_kwargs), pather.solid_query(grid))

    def test_grounded_needs_no_floor(self, pather, controller, grid):
        previous = KinematicState(x=10.0, y=8.01)
        resolved = self._resolve(pather, controller, grid, x=10.2, y=8.01)
        assert pather.choose_floor_row(previous, resolved, 4, self.LOWEST) == (None, 4)

    def test_rising_needs_no_floor(self, pather, controller, grid):
        previous = KinematicState(x=10.0, y=8.01)
        resolved = self._resolve(pather, controller, grid, x=10.2, y=7.5, vel_y=-3.0,
                                 frames_since_ground=1, frames_on_ground=0)
        assert pather.choose_floor_row(previous, resolved, 0, self.LOWEST) == (None, 0)

    def test_fall_past_limit_forces_floor(self, pather, controller, grid):
        previous = KinematicState(x=10.0, y=15.5, vel_y=1.0, frames_since_ground=1, frames_on_ground=0)
        resolved = self._resolve(pather, controller, grid, x=10.0, y=16.5, vel_y=1.0,
                                 frames_since_ground=2, frames_on_ground=0)
        assert pather.landing_table.probability(2) == 0.0
        assert resolved.bottom == 17
        assert pather.choose_floor_row(previous, resolved, 0, self.LOWEST) == (18, 0)

    def test_early_fall_above_limit_keeps_falling(self, pather, controller, grid):
        previous = KinematicState(x=10.0, y=9.5, vel_y=1.0, frames_since_ground=1, frames_on_ground=0)
        resolved = self._resolve(pather, controller, grid, x=10.0, y=10.5, vel_y=1.0,
                                 frames_since_ground=2, frames_on_ground=0)
        assert pather.choose_floor_row(previous, resolved, 0, self.LOWEST) == (None, 0)

    def test_walk_off_drop_uses_walk_off_offset(self, pather, controller, grid):
        # 40 frames on the platform makes the drop certain
        previous = KinematicState(x=10.0, y=8.01, frames_on_ground=40)
        resolved = self._resolve(pather, controller, grid, x=10.5, y=8.1, vel_y=0.5,
                                 frames_since_ground=1, frames_on_ground=40)
        assert pather.choose_floor_row(previous, resolved, 0, self.LOWEST) == (
            None, pather.walk_off_offset)

    def test_walk_off_at_fall_limit_extends_floor(self, pather, controller, grid):
        previous = KinematicState(x=10.0, y=16.01, frames_on_ground=40)
        resolved = self._resolve(pather, controller, grid, x=10.5, y=16.1, vel_y=0.5,
                                 frames_since_ground=1, frames_on_ground=40)
        assert pather.choose_floor_row(previous, resolved, 0, self.LOWEST) == (17, 0)

    def test_walk_off_in_opening_columns_extends_floor(self, pather, controller, grid):
        previous = KinematicState(x=1.0, y=8.01, frames_on_ground=40)
        resolved = self._resolve(pather, controller, grid, x=1.5, y=8.1, vel_y=0.5,
                                 frames_since_ground=1, frames_on_ground=40)
        assert pather.choose_floor_row(previous, resolved, 0, self.LOWEST) == (9, 0)


class TestPlaceFloor:
    LOWEST = 17

    def test_places_floor_and_lands(self, pather, controller, grid):
        resolved = _falling(pather, controller, grid, 2.0, 5.5)
        assert resolved.bottom == 6

        landed = pather.place_floor(grid, resolved, 7, self.LOWEST, pather.solid_query(grid))
        assert grid.get_tile_at(2, 7) is Tile.SOLID_RESERVATION
        assert landed.state.frames_since_ground == 0
        assert landed.state.y == pytest.approx(7 - 0.99)
        assert landed.bottom == 6
        assert _rests_on_reserved_floor(landed.state, grid)

    def test_keeps_reservation_inside_margin(self, pather, controller, grid):
        grid.place(Tile.PLAYER_RESERVATION, 2, 18)
        resolved = _falling(pather, controller, grid, 2.0, 16.5)

        result = pather.place_floor(grid, resolved, 18, self.LOWEST, pather.solid_query(grid))
        assert grid.get_tile_at(2, 18) is Tile.PLAYER_RESERVATION
        assert grid.count(Tile.SOLID_RESERVATION) == 0
        assert result is resolved
        assert result.state.frames_since_ground == 5

    def test_margin_floor_lands_on_remaining_columns(self, pather, controller, grid):
        grid.place(Tile.PLAYER_RESERVATION, 2, 18)
        resolved = _falling(pather, controller, grid, 2.5, 16.5)
        assert (resolved.left, resolved.right) == (2, 3)

        landed = pather.place_floor(grid, resolved, 18, self.LOWEST, pather.solid_query(grid))
        assert grid.get_tile_at(2, 18) is Tile.PLAYER_RESERVATION
        assert grid.get_tile_at(3, 18) is Tile.SOLID_RESERVATION
        assert landed.state.frames_since_ground == 0

    def test_refuses_to_cover_path_above_margin(self, pather, controller, grid):
        grid.place(Tile.PLAYER_RESERVATION, 3, 7)
        resolved = _falling(pather, controller, grid, 2.5, 5.5)

        assert pather.place_floor(grid, resolved, 7, self.LOWEST, pather.solid_query(grid)) is None
        # Grid untouched, including the free column
        assert grid.get_tile_at(3, 7) is Tile.PLAYER_RESERVATION
        assert grid.get_tile_at(2, 7) is Tile.NONE

    def test_floor_below_map_is_not_placed(self, pather, controller):
        grid = TileGrid(10, 8)
        resolved = _falling(pather, controller, grid, 2.0, 6.5)

        result = pather.place_floor(grid, resolved, 8, 5, pather.solid_query(grid))
        assert result is resolved
        assert grid.count(Tile.SOLID_RESERVATION) == 0


class TestPlan:
    def test_finds_path(self, pather, grid):
        result = pather.plan(grid)
        assert result.success
        assert 1 <= result.attempts <= 50
        end = result.path[-1]
        assert end.x >= grid.columns - 1
        assert end.frames_since_ground == 0

    def test_starts_on_left_floor(self, pather, grid):
        result = pather.plan(grid)
        start = result.path[0]
        assert start.x == 0.0
        assert grid.get_tile_at(0, start.bottom_tile(0.99) + 1) is Tile.SOLID_RESERVATION

    def test_grounded_states_rest_on_reserved_floors(self, pather, grid):
        result = pather.plan(grid)
        for state in result.path:
            if state.frames_since_ground == 0:
                assert _rests_on_reserved_floor(state, grid)

    def test_final_state_clear_of_floors(self, pather, grid):
        result = pather.plan(grid)
        end = result.path[-1]
        for x in range(end.left_tile(), end.right_tile(0.99) + 1):
            for y in range(end.top_tile(), end.bottom_tile(0.99) + 1):
                assert grid.get_tile_at(x, y) is Tile.PLAYER_RESERVATION

    @pytest.mark.parametrize("seed", [0, 3, 7, 11])
    def test_floors_never_cover_earlier_frames(self, seed, grid):
        result = _pather(seed=seed).plan(grid)
        assert result.success
        for state in result.path:
            for x in range(state.left_tile(), state.right_tile(0.99) + 1):
                for y in range(state.top_tile(), state.bottom_tile(0.99) + 1):
                    assert grid.get_tile_at(x, y) is not Tile.SOLID_RESERVATION

    def test_frames_fit_in_budget(self, pather, grid):
        result = pather.plan(grid)
        assert len(result.path) <= round(60.0 / 0.05) + 1

    def test_floors_stay_above_bottom_margin(self, pather, grid):
        pather.plan(grid)
        floor_rows = [y for _, y in grid.cells(Tile.SOLID_RESERVATION)]
        assert max(floor_rows) <= fall_limit(grid.rows, pather.config) + 1

    def test_plan_path_stores_result(self, pather, grid):
        assert pather.plan_path(grid)
        assert pather.successful_path is pather.result.path
        assert pather.last_attempt is pather.result.path

    def test_grounded_never_climbs(self, grid):
        pather = _pather(physics=PhysicsConfig(jump_height=0.0), seed=3)
        result = pather.plan(grid)
        assert result.success
        resting = [s.y for s in result.path if s.frames_since_ground == 0]
        assert all(b >= a - 1e-9 for a, b in zip(resting, resting[1:]))
        assert all(s.vel_y >= 0 for s in result.path)

    def test_unreachable_goal(self, grid):
        pather = _pather(physics=PhysicsConfig(run_speed=0.1))
        result = pather.plan(grid, attempt_limit=1)
        assert not result.success
        assert result.attempts == 1
        assert result.successful_path is None
        assert len(result.last_attempt) > 1
        assert result.last_attempt[-1].x < grid.columns - 1

    def test_failed_attempts_leave_reservations(self, grid):
        pather = _pather(physics=PhysicsConfig(run_speed=0.1))
        pather.plan(grid, attempt_limit=2)
        assert grid.count(Tile.SOLID_RESERVATION) > 0
        assert grid.count(Tile.PLAYER_RESERVATION) > 0

    def test_grid_cleared_before_attempt(self, pather, grid):
        grid.fill(Tile.COIN, 0, 0, grid.columns - 1, grid.rows - 1)
        pather.plan(grid)
        assert grid.count(Tile.COIN) == 0

    def test_same_seed_same_path(self, grid):
        first = _pather(seed=11).plan(grid).path
        second_grid = TileGrid(grid.columns, grid.rows)
        second = _pather(seed=11).plan(second_grid).path
        assert first == second
        assert grid == second_grid


class TestPlanErrors:
    def test_map_too_short(self, pather):
        with pytest.raises(ConfigurationError) as excinfo:
            pather.plan(TileGrid(50, 6))
        assert any(v.param == "rows" for v in excinfo.value.result.errors)

    def test_negative_jump_height(self, grid):
        pather = _pather(physics=PhysicsConfig(jump_height=-1.0))
        with pytest.raises(ConfigurationError):
            pather.plan(grid)

    def test_attempt_limit(self, pather, grid):
        with pytest.raises(ConfigurationError):
            pather.plan(grid, attempt_limit=0)

    def test_no_attempt_runs_on_error(self, pather):
        grid = TileGrid(50, 6).fill(Tile.COIN, 0, 0, 49, 5)
        with pytest.raises(ConfigurationError):
            pather.plan(grid)
        assert grid.count(Tile.COIN) == 50 * 6


class TestCancellation:
    def test_cancel_before_first_attempt(self, pather, grid):
        result = pather.plan(grid, should_cancel=lambda: True)
        assert result.cancelled
        assert not result.success
        assert result.attempts == 0

    def test_cancel_between_attempts(self, grid):
        pather = _pather(physics=PhysicsConfig(run_speed=0.1))
        calls = []

        def should_cancel():
            calls.append(1)
            return len(calls) > 2

        result = pather.plan(grid, attempt_limit=10, should_cancel=should_cancel)
        assert result.cancelled
        assert result.attempts == 2
        assert len(result.last_attempt) > 1

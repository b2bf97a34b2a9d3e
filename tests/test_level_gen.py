"""Tests for level generation."""

import pytest

from pathfirst_platformer.config import (
    GeneratorConfig, MapConfig, PatherConfig, PhysicsConfig, SkinnerConfig, CONFIGS,
)
from pathfirst_platformer.constraints import ConfigurationError
from pathfirst_platformer.level_gen import GeneratedLevel, LevelGenerator, generate_level
from pathfirst_platformer.tiles import Tile


@pytest.fixture(scope="module")
def level():
    """Default 50x20 level from a fixed seed."""
    return LevelGenerator().generate(seed=7)


def _footprint(state, physics):
    return [(x, y)
            for x in range(state.left_tile(), state.right_tile(physics.width) + 1)
            for y in range(state.top_tile(), state.bottom_tile(physics.height) + 1)]


class TestLevelGenerator:
    def test_initialization(self):
        gen = LevelGenerator()
        assert gen.config.map.columns == 50
        assert gen.controller.config is gen.config.physics
        assert gen.pather.config is gen.config.pather
        assert gen.skinner.config is gen.config.skinner

    def test_from_config(self):
        gen = LevelGenerator.from_config(CONFIGS["floaty"])
        assert gen.physics.jump_height == 5.0

    def test_config_is_copied(self):
        gen = LevelGenerator(CONFIGS["default"])
        gen.update_physics(jump_height=2.0)
        assert CONFIGS["default"].physics.jump_height == 4.0
        assert gen.physics.jump_height == 2.0

    def test_update_physics_refreshes_derived(self):
        gen = LevelGenerator()
        old_velocity = gen.physics.jump_velocity
        gen.update_physics(jump_height=2.0, gravity=8.0)
        assert gen.physics.jump_velocity != old_velocity
        assert gen.pather.jump_limit == 3
        assert gen.pather.walk_off_offset == gen.physics.peak_frames

    def test_update_pather_rebuilds_tables(self):
        gen = LevelGenerator()
        gen.update_pather(min_seconds_on_platform=1.0, max_seconds_on_platform=3.0)
        assert gen.pather.jump_table.minimum == 20
        assert gen.pather.jump_table.maximum == 60
        assert gen.pather.policy.jump_table is gen.pather.jump_table

    def test_unknown_field(self):
        gen = LevelGenerator()
        with pytest.raises(ValueError, match="Unknown"):
            gen.update_physics(jump_velocity=-3.0)
        with pytest.raises(ValueError, match="Unknown"):
            gen.update_pather(speed=1.0)


class TestGeneratedLevel:
    def test_success(self, level):
        assert isinstance(level, GeneratedLevel)
        assert level.success
        assert 1 <= level.attempts <= 50
        assert level.seed == 7
        assert level.report is not None

    def test_dimensions(self, level):
        assert level.grid.get_dimensions() == (50, 20)

    def test_no_reservations_left(self, level):
        assert not level.grid.has_reservations()
        assert level.reservation_grid.has_reservations()

    def test_start_column_is_supported(self, level):
        grid = level.grid
        assert grid.get_tile_at(0, 19) is Tile.SOLID
        y = 19
        while grid.get_tile_at(0, y) is Tile.SOLID:
            y -= 1
        assert grid.get_tile_at(0, y) is Tile.START_SIGN

    def test_markers(self, level):
        assert level.grid.count(Tile.START_SIGN) == 1
        assert level.grid.count(Tile.GREEN_FLAG) == 1
        assert level.grid.cells(Tile.GREEN_FLAG)[0][0] == 49

    def test_path_reaches_right_edge(self, level):
        end = level.path[-1]
        assert end.x >= 49
        assert end.frames_since_ground == 0

    def test_path_cells_stay_open(self, level):
        physics = GeneratorConfig().physics
        for state in level.path:
            for x, y in _footprint(state, physics):
                assert not level.grid.is_solid(x, y)

    def test_floors_become_solid(self, level):
        for x, y in level.reservation_grid.cells(Tile.SOLID_RESERVATION):
            assert level.grid.get_tile_at(x, y) is Tile.SOLID

    def test_report_matches_grid(self, level):
        report = level.report
        # Markers may replace an enemy in the first or last column
        assert level.grid.count(Tile.PINK_SLIME) <= report.enemies
        assert level.grid.count(Tile.EXCLAMATION_BOX) == report.power_ups
        assert report.floor_tiles == level.reservation_grid.count(Tile.SOLID_RESERVATION)

    def test_to_text(self, level):
        lines = level.to_text().split("\n")
        assert len(lines) == 20
        assert all(len(line) == 50 for line in lines)
        assert "X" not in level.to_text()


class TestDeterminism:
    def test_same_seed_same_level(self):
        gen = LevelGenerator()
        first = gen.generate(seed=42)
        second = gen.generate(seed=42)
        assert first.grid == second.grid
        assert first.path == second.path

    def test_fresh_generators_agree(self):
        first = LevelGenerator().generate(seed=5)
        second = LevelGenerator().generate(seed=5)
        assert first.grid == second.grid

    def test_different_seeds_differ(self):
        gen = LevelGenerator()
        assert gen.generate(seed=1).grid != gen.generate(seed=2).grid


class TestGroundedCharacter:
    @pytest.fixture(scope="class")
    def grounded_level(self):
        config = GeneratorConfig(
            physics=PhysicsConfig(jump_height=0.0),
            skinner=SkinnerConfig(power_up_probability=1.0),
        )
        return LevelGenerator(config).generate(seed=3)

    def test_success(self, grounded_level):
        assert grounded_level.success

    def test_never_climbs(self, grounded_level):
        resting = [s.y for s in grounded_level.path if s.frames_since_ground == 0]
        assert all(b >= a - 1e-9 for a, b in zip(resting, resting[1:]))

    def test_power_ups_on_floors(self, grounded_level):
        grid = grounded_level.grid
        for x, y in grid.cells(Tile.EXCLAMATION_BOX):
            assert grid.get_tile_at(x, y + 1) is Tile.SOLID
            assert 2 <= x < grid.columns - 2


class TestPowerUpPlacement:
    def test_full_jump_above_a_floor(self):
        config = GeneratorConfig(skinner=SkinnerConfig(power_up_probability=1.0))
        level = LevelGenerator(config).generate(seed=7)
        height = round(config.physics.jump_height + config.physics.height)
        boxes = level.grid.cells(Tile.EXCLAMATION_BOX)
        assert boxes
        for x, y in boxes:
            assert level.reservation_grid.get_tile_at(x, y + height) is Tile.SOLID_RESERVATION
            between = [level.reservation_grid.get_tile_at(x, row) for row in range(y, y + height)]
            assert Tile.SOLID_RESERVATION not in between
            assert Tile.PLAYER_RESERVATION not in between[:1]


class TestFailures:
    def test_unreachable_goal(self):
        config = GeneratorConfig(physics=PhysicsConfig(run_speed=0.1),
                                 pather=PatherConfig(attempt_limit=1))
        level = LevelGenerator(config).generate(seed=0)
        assert not level.success
        assert level.report is None
        assert level.attempts == 1
        assert len(level.path) > 1
        # Left unskinned for inspection
        assert level.grid.has_reservations()
        assert level.grid == level.reservation_grid

    def test_attempt_limit_override(self):
        gen = LevelGenerator(GeneratorConfig(physics=PhysicsConfig(run_speed=0.1)))
        level = gen.generate(seed=0, attempt_limit=2)
        assert level.attempts == 2

    def test_map_too_short(self):
        gen = LevelGenerator(GeneratorConfig(map=MapConfig(columns=50, rows=6)))
        with pytest.raises(ConfigurationError):
            gen.generate(seed=0)

    def test_cancelled(self):
        level = LevelGenerator().generate(seed=0, should_cancel=lambda: True)
        assert not level.success
        assert level.path_result.cancelled


class TestPathPreservation:
    @pytest.mark.parametrize("name", ["default", "floaty", "tight", "grounded", "sparse", "busy"])
    def test_path_footprint_is_never_solid(self, name):
        config = CONFIGS[name]
        gen = LevelGenerator(config)
        levels = [gen.generate(seed=seed) for seed in range(6)]
        finished = [level for level in levels if level.success]
        assert finished
        for level in finished:
            for frame, state in enumerate(level.path):
                for x, y in _footprint(state, config.physics):
                    assert not level.grid.is_solid(x, y), (level.seed, frame, x, y)
                    assert level.reservation_grid.get_tile_at(x, y) is not Tile.SOLID_RESERVATION


class TestPresets:
    @pytest.mark.parametrize("name", ["default", "floaty", "tight", "grounded", "sparse", "busy"])
    def test_preset_generates(self, name):
        level = LevelGenerator(CONFIGS[name]).generate(seed=0)
        assert level.success
        assert not level.grid.has_reservations()


class TestGenerateLevel:
    def test_convenience_wrapper(self):
        level = generate_level(GeneratorConfig(map=MapConfig(30, 15)), seed=1)
        assert level.success
        assert level.grid.get_dimensions() == (30, 15)

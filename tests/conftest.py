"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from pathfirst_platformer.config import PhysicsConfig, PatherConfig, GeneratorConfig
from pathfirst_platformer.physics import CharacterController
from pathfirst_platformer.pather import Pather
from pathfirst_platformer.level_gen import LevelGenerator
from pathfirst_platformer.tiles import TileGrid
from pathfirst_platformer import calibration


@pytest.fixture
def physics_config():
    """Default character configuration."""
    return PhysicsConfig()


@pytest.fixture
def controller(physics_config):
    return CharacterController(physics_config)


@pytest.fixture
def rng():
    return np.random.default_rng(0)


@pytest.fixture
def pather(controller, rng):
    """Default pather with a fixed random stream."""
    return Pather(controller, PatherConfig(), rng)


@pytest.fixture
def grid():
    """Empty 50x20 map."""
    return TileGrid(50, 20)


@pytest.fixture
def generator():
    return LevelGenerator(GeneratorConfig())


@pytest.fixture
def flat_floor():
    """Solid query for an endless floor whose top surface is row 10."""
    return lambda x, y: y >= 10


@pytest.fixture(autouse=True)
def _fresh_calibration_cache():
    calibration.clear_cache()
    yield
    calibration.clear_cache()

"""pathfirst_platformer.cli - command line entry point.

Usage::

    pathfirst-platformer generate --seed 7
    pathfirst-platformer generate --preset floaty --columns 80 --show-reservations
    pathfirst-platformer generate --jump-height 0 --plot out/level.png
    pathfirst-platformer calibrate --preset tight
    pathfirst-platformer report --seeds 50 -o out/analysis

Exit status: 0 on success, 1 when no path was found, 2 for invalid
configuration or arguments.
"""

import argparse
import copy
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .calibration import calibrate
from .config import CONFIGS, GeneratorConfig, MapConfig
from .constraints import ConfigurationError
from .level_gen import LevelGenerator

# CLI flag -> PhysicsConfig field
_PHYSICS_FLAGS = {
    "run_speed": float,
    "jump_height": float,
    "gravity": float,
    "falling_gravity_boost": float,
    "air_control": float,
    "coyote_frames": int,
}


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--preset", default="default", choices=sorted(CONFIGS),
        help="Named starting config",
    )
    parser.add_argument("--columns", type=int, help="Map width in tiles")
    parser.add_argument("--rows", type=int, help="Map height in tiles")
    for name, kind in _PHYSICS_FLAGS.items():
        parser.add_argument(f"--{name.replace('_', '-')}", dest=name, type=kind,
                            help=f"Override physics {name}")


def _build_generator(args: argparse.Namespace) -> LevelGenerator:
    generator = LevelGenerator(CONFIGS[args.preset])
    cfg = generator.config
    cfg.map = MapConfig(
        columns=args.columns if args.columns is not None else cfg.map.columns,
        rows=args.rows if args.rows is not None else cfg.map.rows,
    )
    overrides = {name: getattr(args, name) for name in _PHYSICS_FLAGS
                 if getattr(args, name) is not None}
    if overrides:
        generator.update_physics(**overrides)
    return generator


def _print_config_error(error: ConfigurationError) -> None:
    print("Invalid configuration:", file=sys.stderr)
    for violation in error.result.errors:
        print(f"  {violation.param}: {violation.message}", file=sys.stderr)


def cmd_generate(args: argparse.Namespace) -> int:
    generator = _build_generator(args)
    try:
        level = generator.generate(seed=args.seed, attempt_limit=args.attempts)
    except ConfigurationError as e:
        _print_config_error(e)
        return 2

    grid = level.grid.surface_tiles() if args.surface and level.success else level.grid
    print(grid.to_text(show_reservations=args.show_reservations or not level.success))

    if level.success:
        report = level.report
        print(f"OK seed={args.seed} attempts={level.attempts} frames={len(level.path)} "
              f"coins={report.coins + report.arc_coins} enemies={report.enemies} "
              f"power_ups={report.power_ups}")
    else:
        final_x = level.path[-1].x if level.path else 0.0
        print(f"NO PATH seed={args.seed} attempts={level.attempts} "
              f"last_attempt_frames={len(level.path)} reached_x={final_x:.1f}")

    if args.plot:
        from .analysis.diversity_report import plot_level
        out = Path(args.plot)
        saved = plot_level(level.grid, level.path, out.parent, out.stem,
                           title=f"{args.preset} seed={args.seed}")
        print(f"Saved {saved}")

    return 0 if level.success else 1


def cmd_calibrate(args: argparse.Namespace) -> int:
    generator = _build_generator(args)
    profile = calibrate(generator.physics)
    print(json.dumps({
        "declared": generator.physics.to_dict_with_derived(),
        "measured": profile.to_dict(),
    }, indent=2))
    return 0


def cmd_report(args: argparse.Namespace) -> int:
    from .analysis.diversity_report import generate_report
    from .analysis.level_metrics import compute_batch_metrics

    labels = args.presets or sorted(CONFIGS)
    unknown = [label for label in labels if label not in CONFIGS]
    if unknown:
        print(f"Unknown presets: {', '.join(unknown)}", file=sys.stderr)
        return 2

    configs = {}
    for label in labels:
        config: GeneratorConfig = CONFIGS[label]
        if args.columns is not None or args.rows is not None:
            config = copy.deepcopy(config)
            config.map = MapConfig(
                columns=args.columns if args.columns is not None else config.map.columns,
                rows=args.rows if args.rows is not None else config.map.rows,
            )
        configs[label] = config

    df = compute_batch_metrics(configs, seeds=range(args.seeds), workers=args.workers)
    if df.empty:
        print("No levels measured; nothing to report", file=sys.stderr)
        return 1

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_dir / "metrics.csv", index=False)
    generate_report(df, output_dir)
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Generate and inspect levels from the command line."""
    parser = argparse.ArgumentParser(
        prog="pathfirst-platformer",
        description="Path-first procedural platformer level generation",
    )
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Log attempts (-v: info, -vv: debug)")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate one level and print it")
    _add_config_args(gen)
    gen.add_argument("--seed", type=int, help="Random seed")
    gen.add_argument("--attempts", type=int, help="Attempt limit")
    gen.add_argument("--show-reservations", action="store_true",
                     help="Print reservation markers (always shown on failure)")
    gen.add_argument("--surface", action="store_true",
                     help="Print grass-topped and dirt blocks instead of plain solids")
    gen.add_argument("--plot", help="Save a PNG rendering of the level and path")
    gen.set_defaults(func=cmd_generate)

    cal = sub.add_parser("calibrate", help="Measure jump and run behaviour")
    _add_config_args(cal)
    cal.set_defaults(func=cmd_calibrate)

    rep = sub.add_parser("report", help="Generate a batch and write a diversity report")
    rep.add_argument("--presets", nargs="*", help="Presets to include (default: all)")
    rep.add_argument("--seeds", type=int, default=20, help="Levels per preset")
    rep.add_argument("--columns", type=int, help="Map width in tiles")
    rep.add_argument("--rows", type=int, help="Map height in tiles")
    rep.add_argument("--workers", type=int, default=1, help="Parallel worker processes")
    rep.add_argument("--output", "-o", default="analysis", help="Output directory")
    rep.set_defaults(func=cmd_report)

    args = parser.parse_args(argv)

    level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()

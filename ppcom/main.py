"""
PPCom Main Simulation Runner
============================
Entry point for running the line-of-sight connectivity engine on a
simulated fleet.

Provides:
- CLI interface
- Random orbit scenario generation from a roster
- JSON dump of the final topology and optional plots
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from .config import ElectionStrategy, SimulationConfig, create_default_config
from .errors import ConfigurationError
from .logging_config import setup_logging
from .registry import NodeRegistry
from .simulation import PPComSimulation, create_random_scenario
from .transport import marker_topic

logger = logging.getLogger(__name__)


def print_config_summary(config: SimulationConfig):
    """Print configuration summary"""
    print("\n" + "=" * 50)
    print("PPCom Configuration")
    print("=" * 50)
    print(f"Scenario: {config.scenario_name}")
    print(f"Roster: {config.ppcom.roster_path}")
    print(f"World: {config.world_path or '(empty)'}  ground plane: {config.ground_plane}")
    print(f"Evaluation rate: {config.ppcom.evaluation_rate_hz} Hz  step: {config.dt} s")
    print(f"Election: {config.ppcom.election.value}")
    print(f"LOS tolerance: {config.occlusion.distance_tolerance} m")
    print("=" * 50 + "\n")


def run_scenario(config: SimulationConfig, n_steps: int) -> Dict[str, Any]:
    """
    Build agents from the roster and run the simulation.

    Returns:
        Results dictionary with the simulation and the published messages
    """
    probe = NodeRegistry.load(config.ppcom.roster_path,
                              config.ppcom.self_identity or _first_identity(config))
    rng = np.random.default_rng(config.seed)
    agents = create_random_scenario(probe, rng)

    sim = PPComSimulation(config, agents)
    messages = sim.run(n_steps)

    return {
        "simulation": sim,
        "messages": messages,
        "evaluators": sim.evaluators,
    }


def _first_identity(config: SimulationConfig) -> str:
    with open(config.ppcom.roster_path, "r", encoding="utf-8") as f:
        registry = NodeRegistry.from_lines(f)
    if not len(registry):
        raise ConfigurationError(f"Roster {config.ppcom.roster_path} declares no nodes")
    return registry[0].name


def save_results(results: Dict[str, Any], output: str):
    """Write the final topology message as JSON"""
    messages = results["messages"]
    payload = {
        "evaluators": results["evaluators"],
        "n_messages": len(messages),
        "topology": messages[-1].to_dict() if messages else None,
    }
    Path(output).parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w") as f:
        json.dump(payload, f, indent=2)
    logger.info("Saved topology to %s", output)


def save_plot(results: Dict[str, Any], output: str):
    """Render the final topology with obstacles"""
    import matplotlib
    matplotlib.use("Agg")
    from .visualization import TopologyVisualizer

    sim: PPComSimulation = results["simulation"]
    messages = results["messages"]
    if not messages:
        logger.warning("No topology was published, nothing to plot")
        return

    visualizer = TopologyVisualizer()
    evaluator = results["evaluators"][0]
    marker = sim.bus.latest(marker_topic(evaluator))
    fig = visualizer.plot_topology_3d(messages[-1], marker,
                                      getattr(sim.world, "obstacles", None))
    fig.savefig(output, bbox_inches="tight")
    logger.info("Saved plot to %s", output)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PPCom line-of-sight connectivity simulator")

    parser.add_argument("--roster", type=str, required=True,
                        help="Roster file: identity,role,antenna offset per line")
    parser.add_argument("--self-id", type=str, default=None,
                        help="ppcomId used for validation (default: first roster node)")
    parser.add_argument("--link-name", type=str, default="base_link")
    parser.add_argument("--world", type=str, default=None, help="SDF world with box obstacles")
    parser.add_argument("--no-ground", action="store_true", help="Disable the ground plane")

    parser.add_argument("--rate", type=float, default=10.0, help="Evaluation rate (Hz)")
    parser.add_argument("--dt", type=float, default=0.01, help="Simulation step (s)")
    parser.add_argument("--steps", type=int, default=1000)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--topic", type=str, default="ppcom")
    parser.add_argument("--election", type=str, default="role",
                        choices=[e.value for e in ElectionStrategy])
    parser.add_argument("--designated", type=str, default=None,
                        help="Evaluator identity for --election designated")

    parser.add_argument("--output", type=str, help="Output path for the final topology (JSON)")
    parser.add_argument("--plot", type=str, help="Output path for a topology plot (PNG)")
    parser.add_argument("--log-level", type=str.upper, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--log-file", type=str, default=None)
    return parser


def config_from_args(args: argparse.Namespace) -> SimulationConfig:
    config = create_default_config()
    config.ppcom.roster_path = args.roster
    config.ppcom.self_identity = args.self_id or ""
    config.ppcom.self_link_name = args.link_name
    config.ppcom.evaluation_rate_hz = args.rate
    config.ppcom.output_topic = args.topic
    config.ppcom.election = ElectionStrategy(args.election)
    config.ppcom.designated_identity = args.designated
    config.world_path = args.world
    config.ground_plane = not args.no_ground
    config.dt = args.dt
    config.seed = args.seed
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    config = config_from_args(args)
    print_config_summary(config)

    try:
        results = run_scenario(config, args.steps)
    except (ConfigurationError, OSError) as e:
        logger.error("Configuration error, aborting: %s", e)
        return 2

    messages = results["messages"]
    print(f"\nSimulation complete! Evaluator(s): {', '.join(results['evaluators']) or 'none'}")
    print(f"Topology messages published: {len(messages)}")
    if messages:
        final = messages[-1]
        n_links = sum(1 for r in final.ranges if r >= 0)
        print(f"Final LOS links: {n_links}/{len(final.ranges)}")

    if args.output:
        save_results(results, args.output)
    if args.plot:
        save_plot(results, args.plot)
    return 0


if __name__ == "__main__":
    sys.exit(main())

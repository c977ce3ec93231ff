#!/usr/bin/env python3
"""
Main entry point for the service-center pipeline orchestrator.

Supports:
  - Configuration and wiring validation via --dry-run
  - Printing the workflow graph via --list-stages
  - Concurrent happy-path simulation via --simulate
"""

import sys
import json
import logging
import argparse
import yaml

from domain.config import PipelineConfig
from domain.errors import ConfigurationError
from pipeline.executor import PipelineExecutor


def setup_logging(level: str = "INFO"):
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)]
    )


def load_config(config_path: str) -> dict:
    """Load configuration from YAML file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Service-center pipeline orchestrator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate configuration, graph and handler wiring
  python main.py --dry-run

  # Print the workflow graph as JSON
  python main.py --list-stages

  # Run 50 simulated RUSH orders from the web channel
  python main.py --simulate --instances 50 --channel WEB --priority RUSH
        """
    )

    parser.add_argument(
        "--config", type=str, default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--dry-run", action="store_true",
        help="Build graph and registry, validate, and exit"
    )
    mode_group.add_argument(
        "--list-stages", action="store_true",
        help="Print the workflow graph as JSON and exit"
    )
    mode_group.add_argument(
        "--simulate", action="store_true",
        help="Run instances concurrently through the happy path"
    )

    sim_group = parser.add_argument_group("Simulation Options")
    sim_group.add_argument(
        "--instances", type=int, default=None,
        help="Number of simulated instances (overrides simulation.instances)"
    )
    sim_group.add_argument(
        "--channel", type=str, default=None,
        help="Origin channel for simulated instances (overrides simulation.channel)"
    )
    sim_group.add_argument(
        "--priority", type=str, default=None,
        help="Priority for simulated instances (overrides simulation.priority)"
    )

    args = parser.parse_args(argv)

    if args.instances is not None and args.instances <= 0:
        parser.error("--instances must be positive")

    return args


def apply_overrides(config_dict: dict, args) -> dict:
    """Inject CLI simulation overrides into the loaded config (override YAML values)."""
    simulation = dict(config_dict.get("simulation") or {})
    if args.instances is not None:
        simulation["instances"] = args.instances
    if args.channel is not None:
        simulation["channel"] = args.channel
    if args.priority is not None:
        simulation["priority"] = args.priority
    return {**config_dict, "simulation": simulation}


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("Service-Center Pipeline Orchestrator")
    logger.info("=" * 60)

    executor = None
    try:
        logger.info(f"Loading configuration from: {args.config}")
        config_dict = apply_overrides(load_config(args.config), args)
        config = PipelineConfig.from_dict(config_dict)
        logger.info("Configuration loaded and validated successfully")

        executor = PipelineExecutor(config)

        if args.dry_run:
            logger.info("Dry run mode - graph and handler registry are valid, exiting")
            logger.info(f"Stages reachable from entry: {len(executor.graph.reachable_stages())}")
            return 0

        if args.list_stages:
            print(json.dumps(executor.describe_graph(), indent=2))
            return 0

        if args.simulate:
            summary = executor.simulate()
            print(json.dumps(summary, indent=2, default=str))
            if summary["errors"]:
                logger.error(f"✗ Simulation finished with {summary['errors']} error(s)")
                return 1
            logger.info("✓ Simulation completed successfully")
            return 0

        logger.info("Nothing to do; pass --dry-run, --list-stages or --simulate")
        return 0

    except (ConfigurationError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        if executor is not None:
            executor.shutdown()


if __name__ == "__main__":
    sys.exit(main())

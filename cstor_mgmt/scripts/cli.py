#!/usr/bin/env python3
"""
Command line entry points for the cStor node controllers.
Each binary has a single ``start`` command that runs until SIGTERM.
"""

import argparse
import logging
import sys

from ..config import load_controller_config
from ..utils.errors import FatalError
from .supervisor import POOL_MGMT, REPLICA_MGMT, VOLUME_MGMT, Supervisor

DESCRIPTIONS = {
    POOL_MGMT: 'Reconciles CStorPool and CStorVolumeReplica resources on this node',
    REPLICA_MGMT: 'Reconciles CStorVolumeReplica resources on this node',
    VOLUME_MGMT: 'Reconciles the CStorVolume served by this target pod',
}


def setup_logging(level='INFO'):
    """Configure logging with consistent format."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def parse_args(component, argv=None):
    """Parse command line arguments for ``component``."""
    parser = argparse.ArgumentParser(prog=component, description=DESCRIPTIONS[component])
    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    start_parser = subparsers.add_parser('start', help=f'Start {component}')
    start_parser.add_argument('--kubeconfig', default=None,
                              help='Path to a kubeconfig file; in-cluster config is used when omitted')
    start_parser.add_argument('--workers', type=int, default=None,
                              help='Number of workers per controller')
    start_parser.add_argument('--metrics-port', type=int, default=None,
                              help='Port for the Prometheus metrics endpoint; 0 disables it')
    start_parser.add_argument('--log-level', default=None,
                              choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                              type=str.upper,
                              help='Logging level')

    return parser, parser.parse_args(argv)


def run(component, argv=None):
    """Run ``component`` and return the process exit status."""
    parser, args = parse_args(component, argv)
    if args.command != 'start':
        parser.print_help()
        return 1

    try:
        cfg = load_controller_config(
            kubeconfig=args.kubeconfig,
            workers=args.workers,
            metrics_port=args.metrics_port,
            log_level=args.log_level,
        )
    except FatalError as e:
        logging.error(f"Invalid configuration: {e.message}")
        return 1
    setup_logging(cfg.log_level)

    supervisor = Supervisor(component, cfg)
    supervisor.install_signal_handlers()
    try:
        return supervisor.run()
    except FatalError as e:
        logging.error(f"Fatal error: {e.message}")
        return 1
    except KeyboardInterrupt:
        logging.info("Operation stopped by user")
        return 0


def pool_mgmt_main(argv=None):
    sys.exit(run(POOL_MGMT, argv))


def replica_mgmt_main(argv=None):
    sys.exit(run(REPLICA_MGMT, argv))


def volume_mgmt_main(argv=None):
    sys.exit(run(VOLUME_MGMT, argv))


if __name__ == '__main__':
    pool_mgmt_main()

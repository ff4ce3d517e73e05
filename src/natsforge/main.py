# File Chain:
# Doc Version: v1.0.0
#
"""
natsforge Main Entry Point - CLI Argument Parsing and Application Bootstrap

PURPOSE:
    Entry point for the natsforge CLI tool. Handles argument parsing,
    configuration loading, and runs the generator pipeline for one topology
    document.

WHO READS ME:
    - Users: via CLI command `natsforge` or `python -m natsforge`

WHO I READ:
    - config.py: Configuration loading and defaults
    - loader.py: Topology document loading
    - orchestrator.py: The generator pipeline
    - output.py: Writing the artifacts
    - signer.py: nsc or in-memory signer
    - colorlog.py: Custom log formatting

FLOW:
    1. Parse CLI arguments (create_argparser)
    2. Load configuration from config.toml (or defaults)
    3. Load the topology document
    4. --check: validate only and exit
    5. Orchestrate with NscSigner (or MemorySigner for --dry-run)
    6. Write artifacts to the output directory

EXIT STATUS:
    0 when validation and issuance both succeeded and artifacts were written,
    1 otherwise.
"""

import argparse
import logging
import os
import signal
import sys
import threading
from pathlib import Path

import enlighten

import natsforge
from natsforge.colorlog import attach
from natsforge.config import Config
from natsforge.loader import load_topology
from natsforge.models import IssuanceError, NatsforgeError, ValidationError
from natsforge.orchestrator import orchestrate
from natsforge.output import write_artifacts
from natsforge.signer import MemorySigner, NscSigner
from natsforge.validate import PeerPolicy, validate

_LOGGER = logging.getLogger(__name__)


def create_argparser(parser_class=argparse.ArgumentParser):
    """create the argparser for natsforge"""
    parser = parser_class(
        prog=natsforge.__name__, description=natsforge.__description__
    )
    config_settings = parser.add_argument_group("configuration")

    config_settings.add_argument(
        "-c",
        "--config",
        dest="configfile",
        help="Use the configuration from this file, defaults to %(default)s",
        default="config.toml",
    )
    config_settings.add_argument(
        "-w",
        "--write",
        dest="writeconfig",
        action="store_true",
        help="Write the default configuration to a file and exit",
        default=False,
    )
    config_settings.add_argument(
        "-v", "--version", action="version", version=f"%(prog)s {natsforge.__version__}"
    )
    config_settings.add_argument(
        "-l",
        "--loglevel",
        type=str,
        default=os.environ.get("LOG_LEVEL", "WARN"),
        help="DEBUG, INFO, WARN, ERROR, CRITICAL, defaults to %(default)s",
    )
    config_settings.add_argument(
        "-p",
        "--progress",
        action="store_true",
        help="show a progress bar",
    )

    parser.add_argument(
        "-o",
        "--output",
        dest="outdir",
        type=str,
        default="out",
        help='Directory for the generated files, default "%(default)s"',
    )
    parser.add_argument(
        "--overwrite",
        dest="overwrite",
        action="store_true",
        default=False,
        help="Allow overwriting existing files in the output directory",
    )
    parser.add_argument(
        "--check",
        dest="check",
        action="store_true",
        default=False,
        help="Only validate the topology, do not issue or write anything",
    )
    parser.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        default=False,
        help="Use an in-memory signer instead of nsc (tokens are not real signatures)",
    )
    parser.add_argument(
        "--strict-peers",
        dest="strict_peers",
        action="store_true",
        default=False,
        help="Reject asymmetric cluster/gateway peer declarations instead of using their union",
    )
    parser.add_argument(
        "topology",
        nargs="?",
        metavar="TOPOLOGY",
        help="Topology document (TOML, or JSON with a .json suffix)",
    )
    return parser


def get_log_level(level_name: str) -> tuple[int, bool]:
    log_levels = {
        "CRITICAL": logging.CRITICAL,
        "ERROR": logging.ERROR,
        "WARN": logging.WARNING,
        "WARNING": logging.WARNING,
        "INFO": logging.INFO,
        "DEBUG": logging.DEBUG,
        "NOTSET": logging.NOTSET,
    }
    level_name = level_name.upper()
    if level_name in log_levels:
        return log_levels[level_name], False
    return logging.WARNING, True


def setup_logging(loglevel: str):
    """sets up the logging, takes the given loglevel and uses the custom,
    colorful log formatter
    """
    logging.basicConfig(level=logging.WARN)
    level, unknown_loglevel = get_log_level(loglevel)
    logging.root.setLevel(level)
    for handler in logging.root.handlers:
        attach(handler)
    if unknown_loglevel:
        _LOGGER.warning("Unknown log level: %s", loglevel.upper())


def make_signer(args, cfg: Config):
    if args.dry_run:
        _LOGGER.warning("Dry run: using the in-memory signer")
        return MemorySigner(creds_dir=Path(cfg.creds_dir))
    return NscSigner(
        store_dir=Path(cfg.store_dir),
        creds_dir=Path(cfg.creds_dir),
        nsc=cfg.nsc,
        timeout=cfg.timeout,
        keys_dir=Path(cfg.keys_dir) if cfg.keys_dir else None,
    )


def run(args, cfg: Config) -> int:
    topology = load_topology(args.topology)

    if args.check:
        report = validate(topology, cfg.policy)
        for warning in report.warnings:
            _LOGGER.warning(warning)
        report.raise_for_violations()
        _LOGGER.warning("Topology %s is valid", args.topology)
        return 0

    manager = None
    ticks = None
    if args.progress:
        manager = enlighten.get_manager()
        ticks = manager.counter(
            total=1 + len(topology.accounts) + len(topology.users),
            desc="identities",
            unit="steps",
            leave=False,
            color="cyan",
        )

    cancel = threading.Event()

    def interrupt(signum, frame):  # pylint: disable=unused-argument
        _LOGGER.warning("Interrupted, finishing the current step")
        cancel.set()

    previous = signal.signal(signal.SIGINT, interrupt)
    try:
        artifacts = orchestrate(
            topology,
            make_signer(args, cfg),
            cfg,
            cancel=cancel,
            on_step=(lambda step, credential: ticks.update()) if ticks else None,
        )
    finally:
        signal.signal(signal.SIGINT, previous)
        if manager is not None:
            manager.stop()

    written = write_artifacts(artifacts, args.outdir, cfg, overwrite=args.overwrite)
    _LOGGER.warning(
        "Generated %d node config(s) and %d credential(s), %d file(s) in %s",
        len(artifacts.configs),
        len(artifacts.credentials),
        len(written),
        args.outdir,
    )
    return 0


def main():
    """main function, returns 0 on success, 1 otherwise"""
    parser = create_argparser()
    args = parser.parse_args()
    setup_logging(args.loglevel)

    cfg = Config.load(args.configfile)
    if args.writeconfig:
        cfg.save(args.configfile)
        return 0

    if not args.topology:
        parser.error("a topology document is required")
    if args.strict_peers:
        cfg.peer_policy = PeerPolicy.STRICT.value

    try:
        retval = run(args, cfg)
    except ValidationError as exc:
        for violation in exc.violations:
            _LOGGER.error(violation)
        _LOGGER.error("%d violation(s), nothing was issued", len(exc.violations))
        retval = 1
    except IssuanceError as exc:
        _LOGGER.error(exc)
        if exc.completed:
            _LOGGER.error("already issued: %s", ", ".join(exc.completed))
        retval = 1
    except NatsforgeError as exc:
        _LOGGER.error(exc)
        retval = 1
    return retval


if __name__ == "__main__":
    sys.exit(main())

"""
File Chain:
Doc Version: v1.0.0

- Called by: Python import system (when `import natsforge` is executed), entry_points (CLI commands)
- Reads from: importlib.metadata (package metadata)
- Writes to: None (package initialization only, exports public API)

Purpose: Package initialization for natsforge. Defines public API exports and
         loads package metadata (__version__, __description__).

Package Structure:
    - main.py: CLI entry point and argument parsing
    - loader.py: Topology document (TOML/JSON) loading
    - models.py: Topology model, issuance steps and errors
    - validate.py: Three-pass topology validator
    - ordering.py: Issuance plan and config generation order
    - signer.py: nsc and in-memory signers
    - credentials.py: Credential hierarchy builder
    - synth.py: nats-server configuration synthesizer
    - orchestrator.py: Pipeline composition
    - output.py: Artifact persistence
    - config.py: Configuration management
    - colorlog.py: Colored log output formatter
    - templates/: Jinja2 templates for server and resolver configurations

Entry Points:
    - natsforge: CLI command (calls main.main())
    - python -m natsforge: Direct module execution
"""

import importlib.metadata as importlib_metadata

from .config import Config
from .loader import load_topology, parse_topology
from .models import NatsforgeError, Topology
from .orchestrator import Artifacts, orchestrate
from .signer import MemorySigner, NscSigner
from .validate import PeerPolicy, validate
from .main import main

_metadata = importlib_metadata.metadata("natsforge")
__version__ = _metadata["Version"]
__description__ = _metadata["Summary"]


__all__ = [
    "Artifacts",
    "Config",
    "MemorySigner",
    "NatsforgeError",
    "NscSigner",
    "PeerPolicy",
    "Topology",
    "load_topology",
    "main",
    "orchestrate",
    "parse_topology",
    "validate",
]

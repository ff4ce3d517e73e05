"""
File Chain:
Doc Version: v1.0.0
Date Modified: 2026-10-18

- Called by: main.py, orchestrator.py, synth.py
- Purpose: Configuration loading and defaults management

natsforge Configuration - Tool Settings and Defaults

PURPOSE:
    Manages the natsforge tool settings loaded from a TOML file. These are
    settings of the generator run (where nsc keeps its store, timeouts, the
    resolver flavour), not of the declared topology.

WHO READS ME:
    - main.py: Loads configuration via Config.load() during bootstrap
    - orchestrator.py: peer policy and retry count
    - synth.py: JetStream store root, resolver settings

DEPENDENCIES:
    - serde: TOML serialization/deserialization (@deserialize, @serialize)
    - serde.toml: from_toml(), to_toml()

CONFIG PARAMETERS:
    - nsc: nsc executable (default: nsc)
    - store_dir: nsc data directory (default: nsc-store)
    - keys_dir: NKEYS_PATH for nsc, empty keeps the nsc default
    - creds_dir: where user .creds files are written (default: creds)
    - timeout: seconds per nsc call (default: 30)
    - retries: extra attempts when nsc is unavailable (default: 2)
    - resolver: "memory" or a resolver URL (default: memory)
    - resolver_file: name of the shared trust resolver file (default: resolver.conf)
    - peer_policy: "union" or "strict" (default: union), anything else is an error
    - jetstream_root: default JetStream store root, one directory per node

FILE FORMAT:
    config.toml example:
    ```toml
    nsc = "nsc"
    store_dir = "nsc-store"
    creds_dir = "creds"
    timeout = 30.0
    retries = 2
    resolver = "memory"
    resolver_file = "resolver.conf"
    peer_policy = "union"
    jetstream_root = "jetstream"
    ```
"""

import logging
from dataclasses import dataclass

from serde import deserialize, serialize, SerdeError
from serde.toml import from_toml, to_toml

from natsforge.models import NatsforgeError
from natsforge.validate import PeerPolicy

_LOGGER = logging.getLogger(__name__)

MEMORY_RESOLVER = "memory"


@deserialize
@serialize
@dataclass
class Config:
    """natsforge configuration"""

    nsc: str = "nsc"
    store_dir: str = "nsc-store"
    keys_dir: str = ""
    creds_dir: str = "creds"
    timeout: float = 30.0
    retries: int = 2
    resolver: str = MEMORY_RESOLVER
    resolver_file: str = "resolver.conf"
    peer_policy: str = PeerPolicy.UNION.value
    jetstream_root: str = "jetstream"

    @property
    def policy(self) -> PeerPolicy:
        try:
            return PeerPolicy(self.peer_policy)
        except ValueError:
            choices = ", ".join(p.value for p in PeerPolicy)
            raise NatsforgeError(
                f"unknown peer_policy {self.peer_policy!r}, expected one of: {choices}"
            ) from None

    @property
    def memory_resolver(self) -> bool:
        return self.resolver.lower() == MEMORY_RESOLVER

    @classmethod
    def load(cls, filename: str) -> "Config":
        """load the configuration from the given file"""
        try:
            with open(filename, encoding="utf-8") as handle:
                cfg = from_toml(cls, handle.read())
            _LOGGER.info("Configuration loaded from file %s", filename)
        except (FileNotFoundError, TypeError, ValueError, SerdeError) as exc:
            if not isinstance(exc, FileNotFoundError):
                _LOGGER.error(exc)
            cfg = cls()
            _LOGGER.warning("using configuration defaults")
        return cfg

    def save(self, filename: str):
        """save the configuration to the given file"""
        with open(filename, "w+", encoding="utf-8") as handle:
            handle.write(to_toml(self))

"""
File Chain:
Doc Version: v1.0.0
Date Modified: 2026-10-18

- Called by: main.py
- Writes to: the output directory
- Purpose: Persist the artifacts of a successful run

Layout of the output directory:

    <node>.conf          one nats-server configuration per node
    resolver.conf        trust resolver included by every node config
    operator.jwt         operator token
    accounts/<name>.jwt  account tokens
    credentials.json     entity name -> kind, public key, creds file

All target paths are checked before the first file is written, so a refused
overwrite leaves the directory untouched.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from serde import serialize
from serde.json import to_json

from natsforge.config import Config
from natsforge.models import NatsforgeError
from natsforge.orchestrator import Artifacts

_LOGGER = logging.getLogger(__name__)

MANIFEST = "credentials.json"


@serialize
@dataclass
class CredentialRecord:
    name: str
    kind: str
    subject: str
    creds: Optional[str] = None


def artifact_files(artifacts: Artifacts, cfg: Config) -> dict[Path, str]:
    """relative path -> content of every file of a run

    Node configs share the directory with the resolver, so a node named
    after a generated file is refused instead of silently dropped.
    """
    files: dict[Path, str] = {}

    def add(path: Path, text: str, what: str):
        if path in files:
            raise NatsforgeError(f"{what} would overwrite generated file {path}, rename it")
        files[path] = text

    add(Path(cfg.resolver_file), artifacts.resolver, "trust resolver")
    for credential in artifacts.credentials.of_kind("operator"):
        add(Path("operator.jwt"), credential.jwt + "\n", f"operator {credential.name}")
    for credential in artifacts.credentials.of_kind("account"):
        add(
            Path("accounts") / f"{credential.name}.jwt",
            credential.jwt + "\n",
            f"account {credential.name}",
        )
    for name, text in artifacts.configs.items():
        add(Path(f"{name}.conf"), text, f"config of node {name}")
    records = [
        CredentialRecord(
            c.name, c.kind, c.subject, str(c.creds_path) if c.creds_path else None
        )
        for c in artifacts.credentials.values()
    ]
    add(Path(MANIFEST), to_json(records) + "\n", "credential manifest")
    return files


def write_artifacts(
    artifacts: Artifacts, outdir: str | Path, cfg: Config, overwrite: bool = False
) -> list[Path]:
    """write all artifacts below `outdir`, returns the written paths"""
    outdir = Path(outdir)
    files = {outdir / rel: text for rel, text in artifact_files(artifacts, cfg).items()}

    existing = [path for path in files if path.exists()]
    if existing and not overwrite:
        raise NatsforgeError(
            f"Refusing to overwrite existing file: {existing[0]}. Use --overwrite to replace it."
        )
    for path in existing:
        _LOGGER.warning("Overwriting existing file: %s", path)

    for path, text in files.items():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        _LOGGER.info("wrote %s", path)
    return list(files)

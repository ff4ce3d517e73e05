"""
File Chain:
Doc Version: v1.0.0
Date Modified: 2026-10-18

- Called by: credentials.py (through the Signer interface), main.py
- Reads from: the nsc store directory (operator and account JWTs, user creds)
- Writes to: the nsc store directory and the creds directory (through nsc)
- Calls into: nsc (subprocess)

natsforge Signers - Identity Issuance Collaborators

PURPOSE:
    natsforge never signs anything itself. Identity issuance goes through a
    narrow capability interface with one call per entity kind. Two
    implementations ship with the package:

    - NscSigner: drives the `nsc` command line tool, one subprocess per call,
      each with a timeout. JWTs are read back from the nsc store.
    - MemorySigner: deterministic, in-memory handles for dry runs and tests.
      It never spawns a process and its tokens are not real signatures.

ERROR MAPPING (NscSigner):
    - nsc missing, not executable or timed out -> ProcessUnavailableError
    - nsc reports "already exists"            -> DuplicateEntityError
    - any other non-zero exit                  -> SignerRejectedError
"""

import base64
import hashlib
import json
import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from natsforge.models import (
    DuplicateEntityError,
    Export,
    Import,
    Limits,
    Permissions,
    ProcessUnavailableError,
    SignerRejectedError,
)

_LOGGER = logging.getLogger(__name__)

CREDS_JWT = re.compile(
    r"-----BEGIN NATS USER JWT-----\s*(?P<jwt>\S+)\s*------END NATS USER JWT------"
)


@dataclass(frozen=True)
class Credential:
    """opaque handle for an issued identity

    `subject` is the public key the identity is known by, `jwt` the signed
    token and `creds_path` the user credentials file, if the signer wrote one.
    """

    kind: str
    name: str
    subject: str
    jwt: str
    creds_path: Path | None = None


class Signer(Protocol):
    def create_operator(self, name: str, *, reuse_existing: bool = False) -> Credential:
        ...

    def create_account(
        self,
        operator: Credential,
        name: str,
        limits: Limits,
        exports: Sequence[Export],
        imports: Sequence[Import],
        *,
        jetstream: bool = False,
    ) -> Credential:
        ...

    def create_user(
        self,
        account: Credential,
        name: str,
        permissions: Permissions,
        *,
        expiry: str | None = None,
    ) -> Credential:
        ...


def _b64decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def jwt_subject(token: str) -> str:
    """return the `sub` claim of a NATS JWT, this is the identity public key"""
    parts = token.strip().split(".")
    if len(parts) != 3:
        raise SignerRejectedError(f"invalid JWT format: {len(parts)} parts")
    try:
        claims = json.loads(_b64decode(parts[1]))
    except ValueError as exc:
        raise SignerRejectedError(f"cannot decode JWT payload: {exc}") from exc
    subject = claims.get("sub") if isinstance(claims, dict) else None
    if not subject:
        raise SignerRejectedError("no 'sub' field in JWT")
    return subject


def expiry_date(expiry: str) -> str:
    """nsc accepts dates, so timestamps are cut down to their date part"""
    return expiry.split("T", 1)[0]


class NscSigner:
    """issue identities with the nsc tool"""

    def __init__(
        self,
        store_dir: Path,
        creds_dir: Path,
        nsc: str = "nsc",
        timeout: float = 30.0,
        keys_dir: Path | None = None,
    ):
        self.store_dir = Path(store_dir)
        self.creds_dir = Path(creds_dir)
        self.nsc = nsc
        self.timeout = timeout
        self.keys_dir = keys_dir

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        cmd = [self.nsc, *args, "--data-dir", str(self.store_dir)]
        env = None
        if self.keys_dir is not None:
            env = {**os.environ, "NKEYS_PATH": str(self.keys_dir)}
        _LOGGER.debug("running %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ProcessUnavailableError(
                f"{self.nsc} {args[0]} {args[1]} timed out after {self.timeout}s"
            ) from exc
        except OSError as exc:
            raise ProcessUnavailableError(f"cannot run {self.nsc}: {exc}") from exc
        if proc.stdout:
            _LOGGER.debug("nsc stdout: %s", proc.stdout.strip())
        return proc

    def _nsc(self, *args: str, tolerate: str | None = None) -> subprocess.CompletedProcess:
        proc = self._run(*args)
        if proc.returncode == 0:
            return proc
        stderr = (proc.stderr or "").strip()
        if tolerate and tolerate in stderr.lower():
            _LOGGER.debug("ignoring nsc failure: %s", stderr)
            return proc
        what = f"nsc {' '.join(args[:2])}"
        if "already exists" in stderr.lower():
            raise DuplicateEntityError(f"{what} failed: {stderr}")
        raise SignerRejectedError(f"{what} failed: {stderr}")

    def _read(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise SignerRejectedError(f"cannot read {path}: {exc}") from exc

    def create_operator(self, name: str, *, reuse_existing: bool = False) -> Credential:
        jwt_path = self.store_dir / name / f"{name}.jwt"
        if reuse_existing:
            if not jwt_path.exists():
                raise SignerRejectedError(
                    f"reuse_existing set, but no operator JWT found at {jwt_path}"
                )
            _LOGGER.info("reusing operator %s from %s", name, jwt_path)
        else:
            self.store_dir.mkdir(parents=True, exist_ok=True)
            self._nsc("init", "--name", name, "--dir", str(self.store_dir))
            # nsc init creates a SYS account we do not want to inherit
            self._nsc("delete", "account", "--name", "SYS", tolerate="not found")
        token = self._read(jwt_path)
        return Credential("operator", name, jwt_subject(token), token)

    def create_account(
        self,
        operator: Credential,
        name: str,
        limits: Limits,
        exports: Sequence[Export],
        imports: Sequence[Import],
        *,
        jetstream: bool = False,
    ) -> Credential:
        self._nsc("add", "account", "--name", name)

        flags = {
            "max_connections": "--conns",
            "max_data": "--data",
            "max_streams": "--js-streams",
            "max_payload": "--payload",
        }
        edit: list[str] = []
        for limit, value in limits.items():
            edit += [flags[limit], str(value)]
        if jetstream:
            edit += ["--js-mem-storage", "-1", "--js-disk-storage", "-1"]
        if edit:
            self._nsc("edit", "account", "--name", name, *edit)

        for export in exports:
            args = ["add", "export", "--name", export.subject, "--subject", export.subject]
            if export.service:
                args.append("--service")
            self._nsc(*args, "--account", name)
        for imp in imports:
            self._nsc(
                "add", "import",
                "--src-account", imp.account,
                "--remote-subject", imp.subject,
                "--account", name,
            )

        jwt_path = self.store_dir / operator.name / "accounts" / name / f"{name}.jwt"
        token = self._read(jwt_path)
        return Credential("account", name, jwt_subject(token), token)

    def create_user(
        self,
        account: Credential,
        name: str,
        permissions: Permissions,
        *,
        expiry: str | None = None,
    ) -> Credential:
        args = ["add", "user", "--name", name, "--account", account.name]
        if permissions.allow:
            args += ["--allow-pubsub", ",".join(permissions.allow)]
        if permissions.deny:
            args += ["--deny-pubsub", ",".join(permissions.deny)]
        if expiry:
            args += ["--expiry", expiry_date(expiry)]
        self._nsc(*args)

        self.creds_dir.mkdir(parents=True, exist_ok=True)
        creds_path = self.creds_dir / f"{account.name}-{name}.creds"
        creds_path.unlink(missing_ok=True)
        self._nsc(
            "generate", "creds",
            "--account", account.name,
            "--name", name,
            "--output-file", str(creds_path),
        )
        match = CREDS_JWT.search(self._read(creds_path))
        if match is None:
            raise SignerRejectedError(f"no user JWT in {creds_path}")
        token = match.group("jwt")
        return Credential("user", name, jwt_subject(token), token, creds_path)


class MemorySigner:
    """deterministic in-memory signer, issuing the same name twice fails like nsc"""

    PREFIXES = {"operator": "O", "account": "A", "user": "U"}

    def __init__(self, creds_dir: Path | None = None):
        self.creds_dir = creds_dir
        self.issued: dict[str, Credential] = {}
        self.calls: list[tuple[str, str]] = []

    def _issue(self, kind: str, name: str, issuer: str, **claims) -> Credential:
        self.calls.append((kind, name))
        if name in self.issued:
            raise DuplicateEntityError(f"{kind} {name} already exists")
        digest = hashlib.sha512(f"{kind}:{name}".encode()).digest()
        subject = self.PREFIXES[kind] + base64.b32encode(digest).decode("ascii")[:55]
        header = _b64encode(json.dumps({"typ": "JWT", "alg": "ed25519-nkey"}).encode())
        payload = _b64encode(
            json.dumps({"sub": subject, "iss": issuer or subject, "name": name, **claims}).encode()
        )
        signature = _b64encode(hashlib.sha256(f"{header}.{payload}".encode()).digest())
        creds_path = None
        if kind == "user" and self.creds_dir is not None:
            creds_path = Path(self.creds_dir) / f"{claims['account']}-{name}.creds"
        credential = Credential(kind, name, subject, f"{header}.{payload}.{signature}", creds_path)
        self.issued[name] = credential
        return credential

    def create_operator(self, name: str, *, reuse_existing: bool = False) -> Credential:
        if reuse_existing and name in self.issued:
            return self.issued[name]
        return self._issue("operator", name, "")

    def create_account(
        self,
        operator: Credential,
        name: str,
        limits: Limits,
        exports: Sequence[Export],
        imports: Sequence[Import],
        *,
        jetstream: bool = False,
    ) -> Credential:
        return self._issue(
            "account",
            name,
            operator.subject,
            limits=dict(limits.items()),
            jetstream=jetstream,
            exports=[e.subject for e in exports],
            imports=[f"{i.account}:{i.subject}" for i in imports],
        )

    def create_user(
        self,
        account: Credential,
        name: str,
        permissions: Permissions,
        *,
        expiry: str | None = None,
    ) -> Credential:
        return self._issue(
            "user",
            name,
            account.subject,
            account=account.name,
            allow=list(permissions.allow),
            deny=list(permissions.deny),
            expiry=expiry,
        )

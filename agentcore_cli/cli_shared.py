from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import boto3


class CliError(Exception):
    pass


class UsageError(CliError):
    pass


class OpError(CliError):
    pass


AGENTCORE_CONFIG = "AGENTCORE_CONFIG"
AGENTCORE_STACK_NAME = "AGENTCORE_STACK_NAME"
DEFAULT_CONFIG_PATH = "agentcore.yaml"


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


@dataclass(frozen=True)
class GlobalOpts:
    pretty: bool
    quiet: bool


def _env(name: str) -> str:
    return (os.environ.get(name) or "").strip()


def _config_path(raw: str | None) -> Path:
    return Path(raw or _env(AGENTCORE_CONFIG) or DEFAULT_CONFIG_PATH)


def _stack_name(raw: str | None) -> str:
    name = (raw or "").strip() or _env(AGENTCORE_STACK_NAME)
    if not name:
        raise UsageError(f"missing stack name (pass --stack or set {AGENTCORE_STACK_NAME})")
    return name


def _aws_profile_region_from_env() -> tuple[str, str]:
    profile = _env("AWS_PROFILE")
    region = _env("AWS_REGION")
    if not profile:
        raise UsageError("missing AWS_PROFILE (set env or add it to .env)")
    if not region:
        raise UsageError("missing AWS_REGION (set env or add it to .env)")
    return profile, region


def _account_session() -> Any:
    profile, region = _aws_profile_region_from_env()
    return boto3.session.Session(profile_name=profile, region_name=region)


def _stack_outputs(session: Any, stack_name: str) -> dict[str, str]:
    """OutputKey -> OutputValue for a deployed AgentCore stack."""
    cf = session.client("cloudformation")
    try:
        resp = cf.describe_stacks(StackName=stack_name)
    except Exception as e:
        raise OpError(f"cannot read outputs of stack {stack_name!r}: {e}") from e
    stacks = resp.get("Stacks") or []
    if not stacks:
        raise OpError(f"stack not found: {stack_name}")
    outputs: dict[str, str] = {}
    for entry in stacks[0].get("Outputs") or []:
        key = str(entry.get("OutputKey") or "").strip()
        if key:
            outputs[key] = str(entry.get("OutputValue") or "").strip()
    return outputs


def _emit_json(payload: Any, *, pretty: bool) -> None:
    if pretty:
        text = json.dumps(payload, indent=2, sort_keys=True)
    else:
        text = json.dumps(payload, separators=(",", ":"), sort_keys=True)
    sys.stdout.write(text + "\n")


def _write_text(*, path: Path, text: str, overwrite: bool) -> None:
    if path.exists() and not overwrite:
        raise UsageError(f"refusing to overwrite existing file: {path} (pass --force)")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise OpError(f"failed to write {path}: {e}") from e

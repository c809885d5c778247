"""Load and save stack configs as JSON or YAML.

Both formats share one camelCase schema; YAML is parsed with ``yaml.safe_load``
so any JSON document is also a valid YAML document. Loaders apply defaults but
do not validate: call `validate_stack_config` (or let `AgentCoreStack` do it).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import yaml

from .config import (
    AgentConfig,
    IAMConfig,
    ObservabilityConfig,
    SecretsConfig,
    StackConfig,
    VPCConfig,
    apply_defaults,
)
from .errors import DocumentParseError, SchemaError

JSON_SUFFIXES = (".json",)
YAML_SUFFIXES = (".yaml", ".yml")

_STACK_KEYS = {
    "stackName", "description", "agents", "vpc", "secrets",
    "observability", "iam", "tags", "removalPolicy",
}
_AGENT_KEYS = {
    "name", "containerImage", "description", "memoryMB", "timeoutSeconds",
    "environment", "secretsARNs", "isDefault",
}
_VPC_KEYS = {"createVPC", "vpcCidr", "maxAZs", "enableVPCEndpoints", "vpcId", "subnetIds"}
_SECRETS_KEYS = {"createSecrets", "secretValues"}
_OBSERVABILITY_KEYS = {
    "provider", "project", "apiKeySecretRef", "enableCloudWatchLogs", "logRetentionDays",
}
_IAM_KEYS = {"roleRef", "enableBedrockAccess", "bedrockModelIds"}


# ── Schema helpers ──────────────────────────────────────────────────


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _object(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(path, f"expected object, got {_type_name(value)}")
    return value


def _check_keys(doc: dict[str, Any], allowed: set[str], path: str, required: tuple[str, ...] = ()) -> None:
    for key in doc:
        if key not in allowed:
            raise SchemaError(_join(path, str(key)), "unknown field")
    for key in required:
        if key not in doc:
            raise SchemaError(_join(path, key), "required field is missing")


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _str(doc: dict[str, Any], key: str, path: str, default: str = "") -> str:
    value = doc.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise SchemaError(_join(path, key), f"expected string, got {_type_name(value)}")
    return value


def _opt_str(doc: dict[str, Any], key: str, path: str) -> str | None:
    if doc.get(key) is None:
        return None
    return _str(doc, key, path)


def _bool(doc: dict[str, Any], key: str, path: str) -> bool | None:
    value = doc.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise SchemaError(_join(path, key), f"expected boolean, got {_type_name(value)}")
    return value


def _int(doc: dict[str, Any], key: str, path: str) -> int | None:
    value = doc.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaError(_join(path, key), f"expected integer, got {_type_name(value)}")
    return value


def _str_list(doc: dict[str, Any], key: str, path: str) -> list[str]:
    value = doc.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise SchemaError(_join(path, key), f"expected array of strings, got {_type_name(value)}")
    for idx, item in enumerate(value):
        if not isinstance(item, str):
            raise SchemaError(f"{_join(path, key)}[{idx}]", f"expected string, got {_type_name(item)}")
    return list(value)


def _str_map(doc: dict[str, Any], key: str, path: str) -> dict[str, str]:
    value = doc.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SchemaError(_join(path, key), f"expected object, got {_type_name(value)}")
    out: dict[str, str] = {}
    for k, v in value.items():
        if not isinstance(v, str):
            raise SchemaError(f"{_join(path, key)}.{k}", f"expected string, got {_type_name(v)}")
        out[str(k)] = v
    return out


def _section(doc: dict[str, Any], key: str, parse: Callable[[dict[str, Any], str], Any]) -> Any:
    value = doc.get(key)
    if value is None:
        return None
    return parse(_object(value, key), key)


# ── dict <-> model ──────────────────────────────────────────────────


def _agent_from_dict(doc: dict[str, Any], path: str) -> AgentConfig:
    _check_keys(doc, _AGENT_KEYS, path, required=("name", "containerImage"))
    return AgentConfig(
        name=_str(doc, "name", path),
        container_image=_str(doc, "containerImage", path),
        description=_str(doc, "description", path),
        memory_mb=_int(doc, "memoryMB", path),
        timeout_seconds=_int(doc, "timeoutSeconds", path),
        environment=_str_map(doc, "environment", path),
        secrets_arns=_str_list(doc, "secretsARNs", path),
        is_default=bool(_bool(doc, "isDefault", path)),
    )


def _vpc_from_dict(doc: dict[str, Any], path: str) -> VPCConfig:
    _check_keys(doc, _VPC_KEYS, path)
    vpc_cidr = _opt_str(doc, "vpcCidr", path)
    return VPCConfig(
        create_vpc=_bool(doc, "createVPC", path),
        vpc_cidr=vpc_cidr.strip() if vpc_cidr is not None else None,
        max_azs=_int(doc, "maxAZs", path),
        enable_vpc_endpoints=bool(_bool(doc, "enableVPCEndpoints", path)),
        vpc_id=_opt_str(doc, "vpcId", path),
        subnet_ids=_str_list(doc, "subnetIds", path),
    )


def _secrets_from_dict(doc: dict[str, Any], path: str) -> SecretsConfig:
    _check_keys(doc, _SECRETS_KEYS, path)
    return SecretsConfig(
        create_secrets=bool(_bool(doc, "createSecrets", path)),
        secret_values=_str_map(doc, "secretValues", path),
    )


def _observability_from_dict(doc: dict[str, Any], path: str) -> ObservabilityConfig:
    _check_keys(doc, _OBSERVABILITY_KEYS, path, required=("provider",))
    return ObservabilityConfig(
        provider=_str(doc, "provider", path),
        project=_str(doc, "project", path),
        api_key_secret_ref=_str(doc, "apiKeySecretRef", path),
        enable_cloud_watch_logs=_bool(doc, "enableCloudWatchLogs", path),
        log_retention_days=_int(doc, "logRetentionDays", path),
    )


def _iam_from_dict(doc: dict[str, Any], path: str) -> IAMConfig:
    _check_keys(doc, _IAM_KEYS, path)
    return IAMConfig(
        role_ref=_str(doc, "roleRef", path),
        enable_bedrock_access=_bool(doc, "enableBedrockAccess", path),
        bedrock_model_ids=_str_list(doc, "bedrockModelIds", path),
    )


def stack_config_from_dict(doc: Any) -> StackConfig:
    """Map a parsed document onto the model. Does not apply defaults."""
    doc = _object(doc, "")
    _check_keys(doc, _STACK_KEYS, "", required=("stackName", "agents"))

    raw_agents = doc.get("agents")
    if not isinstance(raw_agents, list):
        raise SchemaError("agents", f"expected array, got {_type_name(raw_agents)}")
    agents = [
        _agent_from_dict(_object(item, f"agents[{idx}]"), f"agents[{idx}]")
        for idx, item in enumerate(raw_agents)
    ]

    removal_policy = _str(doc, "removalPolicy", "")
    return StackConfig(
        stack_name=_str(doc, "stackName", ""),
        description=_str(doc, "description", ""),
        agents=agents,
        vpc=_section(doc, "vpc", _vpc_from_dict),
        secrets=_section(doc, "secrets", _secrets_from_dict),
        observability=_section(doc, "observability", _observability_from_dict),
        iam=_section(doc, "iam", _iam_from_dict),
        tags=_str_map(doc, "tags", ""),
        removal_policy=removal_policy.strip().lower(),
    )


def _compact(doc: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in doc.items() if v is not None}


def stack_config_to_dict(config: StackConfig) -> dict[str, Any]:
    """Render ``config`` in document form, omitting unset (``None``) fields."""
    out: dict[str, Any] = {
        "stackName": config.stack_name,
        "description": config.description,
        "agents": [
            _compact(
                {
                    "name": a.name,
                    "containerImage": a.container_image,
                    "description": a.description,
                    "memoryMB": a.memory_mb,
                    "timeoutSeconds": a.timeout_seconds,
                    "environment": dict(a.environment),
                    "secretsARNs": list(a.secrets_arns),
                    "isDefault": a.is_default,
                }
            )
            for a in config.agents
        ],
    }
    if config.vpc is not None:
        v = config.vpc
        out["vpc"] = _compact(
            {
                "createVPC": v.create_vpc,
                "vpcCidr": v.vpc_cidr,
                "maxAZs": v.max_azs,
                "enableVPCEndpoints": v.enable_vpc_endpoints,
                "vpcId": v.vpc_id,
                "subnetIds": list(v.subnet_ids),
            }
        )
    if config.secrets is not None:
        out["secrets"] = {
            "createSecrets": config.secrets.create_secrets,
            "secretValues": dict(config.secrets.secret_values),
        }
    if config.observability is not None:
        o = config.observability
        out["observability"] = _compact(
            {
                "provider": o.provider,
                "project": o.project,
                "apiKeySecretRef": o.api_key_secret_ref,
                "enableCloudWatchLogs": o.enable_cloud_watch_logs,
                "logRetentionDays": o.log_retention_days,
            }
        )
    if config.iam is not None:
        i = config.iam
        out["iam"] = _compact(
            {
                "roleRef": i.role_ref,
                "enableBedrockAccess": i.enable_bedrock_access,
                "bedrockModelIds": list(i.bedrock_model_ids),
            }
        )
    out["tags"] = dict(config.tags)
    if config.removal_policy:
        out["removalPolicy"] = config.removal_policy
    return out


# ── Parsing ─────────────────────────────────────────────────────────


def _parse_json(text: str | bytes, *, source: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DocumentParseError(e.msg, source=source, line=e.lineno, column=e.colno) from e
    except UnicodeDecodeError as e:
        raise DocumentParseError(f"invalid encoding: {e}", source=source) from e


def _parse_yaml(text: str | bytes, *, source: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.MarkedYAMLError as e:
        mark = e.problem_mark or e.context_mark
        line = mark.line + 1 if mark is not None else None
        column = mark.column + 1 if mark is not None else None
        raise DocumentParseError(str(e.problem or e), source=source, line=line, column=column) from e
    except yaml.YAMLError as e:
        raise DocumentParseError(str(e), source=source) from e


def load_stack_config_from_json(text: str | bytes, *, source: str = "<json>") -> StackConfig:
    return apply_defaults(stack_config_from_dict(_parse_json(text, source=source)))


def load_stack_config_from_yaml(text: str | bytes, *, source: str = "<yaml>") -> StackConfig:
    return apply_defaults(stack_config_from_dict(_parse_yaml(text, source=source)))


def load_stack_config_from_file(path: str | Path) -> StackConfig:
    """Load a config file, picking the format from its extension."""
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix not in JSON_SUFFIXES + YAML_SUFFIXES:
        raise DocumentParseError(
            f"unsupported config file extension {p.suffix!r} (use .json, .yaml or .yml)",
            source=str(p),
        )
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise DocumentParseError(f"cannot read config file: {e.strerror or e}", source=str(p)) from e
    if suffix in JSON_SUFFIXES:
        return load_stack_config_from_json(text, source=str(p))
    return load_stack_config_from_yaml(text, source=str(p))


# ── Serialization ───────────────────────────────────────────────────


def dump_stack_config_json(config: StackConfig, *, indent: int | None = 2) -> str:
    return json.dumps(stack_config_to_dict(config), indent=indent) + "\n"


def dump_stack_config_yaml(config: StackConfig) -> str:
    return yaml.safe_dump(stack_config_to_dict(config), default_flow_style=False, sort_keys=False)


def convert_json_to_yaml(text: str | bytes, *, source: str = "<json>") -> str:
    doc = _parse_json(text, source=source)
    return yaml.safe_dump(doc, default_flow_style=False, sort_keys=False)


def convert_yaml_to_json(text: str | bytes, *, source: str = "<yaml>") -> str:
    doc = _parse_yaml(text, source=source)
    return json.dumps(doc, indent=2) + "\n"


# ── Examples ────────────────────────────────────────────────────────


def _example_config() -> StackConfig:
    return StackConfig(
        stack_name="my-agents",
        description="Example multi-agent stack",
        agents=[
            AgentConfig(
                name="research",
                container_image="ghcr.io/example/research:latest",
                description="Research agent",
                memory_mb=512,
                timeout_seconds=30,
                environment={"LOG_LEVEL": "info"},
            ),
            AgentConfig(
                name="orchestration",
                container_image="ghcr.io/example/orchestration:latest",
                description="Orchestration agent",
                memory_mb=1024,
                timeout_seconds=300,
                is_default=True,
            ),
        ],
        vpc=VPCConfig(create_vpc=True, vpc_cidr="10.0.0.0/16", max_azs=2, enable_vpc_endpoints=True),
        observability=ObservabilityConfig(
            provider="opik",
            project="my-agents",
            api_key_secret_ref="arn:aws:secretsmanager:us-east-1:123456789012:secret:opik-api-key",
            enable_cloud_watch_logs=True,
            log_retention_days=30,
        ),
        iam=IAMConfig(enable_bedrock_access=True),
        tags={"Project": "my-agents", "Environment": "dev"},
        removal_policy="destroy",
    )


def json_config_example() -> str:
    return dump_stack_config_json(_example_config())


def yaml_config_example() -> str:
    return dump_stack_config_yaml(_example_config())


def write_example_config(path: str | Path, *, overwrite: bool = False) -> Path:
    """Write an example config; the format follows the file extension."""
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix in JSON_SUFFIXES:
        text = json_config_example()
    elif suffix in YAML_SUFFIXES:
        text = yaml_config_example()
    else:
        raise ValueError(f"unsupported config file extension {p.suffix!r} (use .json, .yaml or .yml)")
    if p.exists() and not overwrite:
        raise FileExistsError(f"refusing to overwrite existing file: {p}")
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")
    return p

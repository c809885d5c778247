"""Validation for stack configurations.

Every rule is checked and all violations are reported together, in a fixed
order (stack, agents in list order, vpc, secrets, observability, iam, removal
policy), so the same config always yields the same error list. Validation never
modifies the config; run `apply_defaults` first.
"""

from __future__ import annotations

import ipaddress
import math
from typing import Any

from .config import (
    API_KEY_PROVIDERS,
    MAX_TIMEOUT_SECONDS,
    VALID_LOG_RETENTION_DAYS,
    VALID_MEMORY_VALUES,
    VALID_OBSERVABILITY_PROVIDERS,
    VALID_REMOVAL_POLICIES,
    AgentConfig,
    IAMConfig,
    ObservabilityConfig,
    SecretsConfig,
    StackConfig,
    VPCConfig,
)
from .errors import ValidationError, ValidationIssue

# AWS VPCs accept netmasks between /16 and /28.
_MIN_VPC_PREFIX = 16
_MAX_VPC_PREFIX = 28
# A new VPC gets a public and a private subnet in every AZ.
_SUBNET_GROUPS = 2


class ValidationResult:
    """Collects validation issues for one config."""

    def __init__(self) -> None:
        self.issues: list[ValidationIssue] = []

    def error(self, code: str, field: str, message: str, value: Any = None) -> None:
        self.issues.append(ValidationIssue(code=code, field=field, message=message, value=value))

    @property
    def valid(self) -> bool:
        return not self.issues

    def raise_if_invalid(self) -> None:
        if not self.valid:
            raise ValidationError(self.issues)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _blank(value: str | None) -> bool:
    return not (value or "").strip()


def _check_agent(result: ValidationResult, agent: AgentConfig, idx: int, seen: set[str]) -> None:
    prefix = f"agents[{idx}]"
    if _blank(agent.name):
        result.error("agent-name-required", f"{prefix}.name", "agent name is required")
    elif agent.name in seen:
        result.error(
            "agent-name-duplicate",
            f"{prefix}.name",
            f"agent name {agent.name!r} is used more than once",
            agent.name,
        )
    else:
        seen.add(agent.name)

    if _blank(agent.container_image):
        result.error(
            "agent-image-required",
            f"{prefix}.containerImage",
            "container image is required",
        )

    if agent.memory_mb not in VALID_MEMORY_VALUES or not _is_int(agent.memory_mb):
        allowed = ", ".join(str(v) for v in VALID_MEMORY_VALUES)
        result.error(
            "agent-memory-invalid",
            f"{prefix}.memoryMB",
            f"memory {agent.memory_mb!r} MB is not one of: {allowed}",
            agent.memory_mb,
        )

    timeout = agent.timeout_seconds
    if not _is_int(timeout) or not 1 <= timeout <= MAX_TIMEOUT_SECONDS:
        result.error(
            "agent-timeout-invalid",
            f"{prefix}.timeoutSeconds",
            f"timeout must be an integer between 1 and {MAX_TIMEOUT_SECONDS} seconds",
            timeout,
        )


def _check_agents(result: ValidationResult, agents: list[AgentConfig]) -> None:
    if not agents:
        result.error("agents-required", "agents", "at least one agent is required")
        return

    seen: set[str] = set()
    for idx, agent in enumerate(agents):
        _check_agent(result, agent, idx, seen)

    defaults = [a.name for a in agents if a.is_default]
    if len(defaults) > 1:
        result.error(
            "agent-default-multiple",
            "agents",
            f"only one agent may be marked default, got {len(defaults)}: {', '.join(defaults)}",
            defaults,
        )


def _cidr_problem(cidr: str | None) -> str:
    raw = cidr or ""
    if "/" not in raw:
        return "expected IPv4 CIDR notation like 10.0.0.0/16"
    try:
        net = ipaddress.IPv4Network(raw, strict=True)
    except ValueError as e:
        return f"not a valid IPv4 CIDR block: {e}"
    if not _MIN_VPC_PREFIX <= net.prefixlen <= _MAX_VPC_PREFIX:
        return f"netmask must be between /{_MIN_VPC_PREFIX} and /{_MAX_VPC_PREFIX}"
    return ""


def _check_vpc(result: ValidationResult, vpc: VPCConfig) -> None:
    if vpc.create_vpc:
        problem = _cidr_problem(vpc.vpc_cidr)
        if problem:
            result.error("vpc-cidr-invalid", "vpc.vpcCidr", problem, vpc.vpc_cidr)
        azs_ok = _is_int(vpc.max_azs) and vpc.max_azs >= 1
        if not azs_ok:
            result.error(
                "vpc-max-azs-invalid",
                "vpc.maxAZs",
                "max AZ count must be at least 1",
                vpc.max_azs,
            )
        if not problem and azs_ok:
            prefix = ipaddress.IPv4Network(vpc.vpc_cidr).prefixlen
            subnet_prefix = prefix + math.ceil(math.log2(_SUBNET_GROUPS * vpc.max_azs))
            if subnet_prefix > _MAX_VPC_PREFIX:
                result.error(
                    "vpc-cidr-too-small",
                    "vpc.vpcCidr",
                    f"{vpc.vpc_cidr} cannot hold {_SUBNET_GROUPS * vpc.max_azs} subnets "
                    f"for {vpc.max_azs} AZ(s); each would be /{subnet_prefix}, "
                    f"smaller than /{_MAX_VPC_PREFIX}",
                    vpc.vpc_cidr,
                )
        return

    if _blank(vpc.vpc_id):
        result.error("vpc-id-required", "vpc.vpcId", "an existing VPC requires vpcId")
    if not [s for s in vpc.subnet_ids if not _blank(s)]:
        result.error(
            "vpc-subnets-required",
            "vpc.subnetIds",
            "an existing VPC requires at least one subnet id",
        )


def _check_secrets(result: ValidationResult, secrets: SecretsConfig) -> None:
    if secrets.create_secrets and not secrets.secret_values:
        result.error(
            "secrets-values-required",
            "secrets.secretValues",
            "createSecrets is set but no secret values were given",
        )


def _check_observability(result: ValidationResult, obs: ObservabilityConfig) -> None:
    if obs.provider not in VALID_OBSERVABILITY_PROVIDERS:
        result.error(
            "observability-provider-invalid",
            "observability.provider",
            f"provider {obs.provider!r} is not one of: {', '.join(VALID_OBSERVABILITY_PROVIDERS)}",
            obs.provider,
        )
    elif obs.provider in API_KEY_PROVIDERS and _blank(obs.api_key_secret_ref):
        result.error(
            "observability-api-key-required",
            "observability.apiKeySecretRef",
            f"provider {obs.provider!r} requires apiKeySecretRef",
        )

    days = obs.log_retention_days
    if days is not None and days not in VALID_LOG_RETENTION_DAYS:
        result.error(
            "observability-retention-invalid",
            "observability.logRetentionDays",
            f"{days!r} is not a CloudWatch Logs retention period",
            days,
        )


def _check_iam(result: ValidationResult, iam: IAMConfig) -> None:
    for idx, model_id in enumerate(iam.bedrock_model_ids):
        if _blank(model_id):
            result.error(
                "iam-model-id-invalid",
                f"iam.bedrockModelIds[{idx}]",
                "Bedrock model id must not be empty",
            )


def check_stack_config(config: StackConfig) -> ValidationResult:
    result = ValidationResult()

    if _blank(config.stack_name):
        result.error("stack-name-required", "stackName", "stack name is required")

    _check_agents(result, config.agents)

    if config.vpc is not None:
        _check_vpc(result, config.vpc)
    if config.secrets is not None:
        _check_secrets(result, config.secrets)
    if config.observability is not None:
        _check_observability(result, config.observability)
    if config.iam is not None:
        _check_iam(result, config.iam)

    if config.removal_policy not in VALID_REMOVAL_POLICIES:
        result.error(
            "removal-policy-invalid",
            "removalPolicy",
            f"removal policy must be one of: {', '.join(VALID_REMOVAL_POLICIES)}",
            config.removal_policy,
        )
    return result


def validate_stack_config(config: StackConfig) -> None:
    """Raise `ValidationError` listing every problem in ``config``."""
    check_stack_config(config).raise_if_invalid()

"""Stack configuration model.

A `StackConfig` describes one deployable multi-agent stack: the agents and the
shared network, secrets, observability and IAM settings they run with. Fields
left as ``None`` are "unset" and get filled in by `apply_defaults`.
"""

from __future__ import annotations

from dataclasses import dataclass, field

VALID_MEMORY_VALUES = (512, 1024, 2048, 4096, 8192, 10240)
VALID_OBSERVABILITY_PROVIDERS = ("opik", "langfuse", "cloudwatch", "none")
# Providers that ship traces to a third-party backend and need an API key.
API_KEY_PROVIDERS = ("opik", "langfuse")
VALID_REMOVAL_POLICIES = ("retain", "destroy")
# CloudWatch Logs only accepts these retention periods.
VALID_LOG_RETENTION_DAYS = (
    1, 3, 5, 7, 14, 30, 60, 90, 120, 150, 180, 365, 400, 545, 731,
    1096, 1827, 2192, 2557, 2922, 3288, 3653,
)

DEFAULT_VPC_CIDR = "10.0.0.0/16"
DEFAULT_MAX_AZS = 2
DEFAULT_MEMORY_MB = VALID_MEMORY_VALUES[0]
DEFAULT_TIMEOUT_SECONDS = 30
MAX_TIMEOUT_SECONDS = 900
DEFAULT_OBSERVABILITY_PROVIDER = "cloudwatch"
DEFAULT_LOG_RETENTION_DAYS = 30
# Dev-first default: tear down stateful resources with the stack.
DEFAULT_REMOVAL_POLICY = "destroy"


@dataclass
class AgentConfig:
    name: str = ""
    container_image: str = ""
    description: str = ""
    memory_mb: int | None = None
    timeout_seconds: int | None = None
    environment: dict[str, str] = field(default_factory=dict)
    secrets_arns: list[str] = field(default_factory=list)
    is_default: bool = False


@dataclass
class VPCConfig:
    """Either a VPC to create (cidr/max AZs) or an existing one (id/subnets).

    ``create_vpc`` selects the variant; ``None`` means "decide from the other
    fields" and is resolved by `apply_defaults`.
    """

    create_vpc: bool | None = None
    vpc_cidr: str | None = None
    max_azs: int | None = None
    enable_vpc_endpoints: bool = False
    vpc_id: str | None = None
    subnet_ids: list[str] = field(default_factory=list)


@dataclass
class SecretsConfig:
    create_secrets: bool = False
    secret_values: dict[str, str] = field(default_factory=dict)


@dataclass
class ObservabilityConfig:
    provider: str = ""
    project: str = ""
    api_key_secret_ref: str = ""
    enable_cloud_watch_logs: bool | None = None
    log_retention_days: int | None = None


@dataclass
class IAMConfig:
    role_ref: str = ""
    enable_bedrock_access: bool | None = None
    bedrock_model_ids: list[str] = field(default_factory=list)


@dataclass
class StackConfig:
    stack_name: str = ""
    description: str = ""
    agents: list[AgentConfig] = field(default_factory=list)
    vpc: VPCConfig | None = None
    secrets: SecretsConfig | None = None
    observability: ObservabilityConfig | None = None
    iam: IAMConfig | None = None
    tags: dict[str, str] = field(default_factory=dict)
    removal_policy: str = ""

    def default_agent(self) -> AgentConfig | None:
        """Agent marked ``is_default``, else the first agent by convention."""
        for agent in self.agents:
            if agent.is_default:
                return agent
        return self.agents[0] if self.agents else None

    def agent(self, name: str) -> AgentConfig | None:
        for a in self.agents:
            if a.name == name:
                return a
        return None


def default_agent_config(name: str, container_image: str) -> AgentConfig:
    return AgentConfig(
        name=name,
        container_image=container_image,
        memory_mb=DEFAULT_MEMORY_MB,
        timeout_seconds=DEFAULT_TIMEOUT_SECONDS,
    )


def default_vpc_config() -> VPCConfig:
    return VPCConfig(
        create_vpc=True,
        vpc_cidr=DEFAULT_VPC_CIDR,
        max_azs=DEFAULT_MAX_AZS,
        enable_vpc_endpoints=True,
    )


def default_observability_config() -> ObservabilityConfig:
    return ObservabilityConfig(
        provider=DEFAULT_OBSERVABILITY_PROVIDER,
        enable_cloud_watch_logs=True,
        log_retention_days=DEFAULT_LOG_RETENTION_DAYS,
    )


def default_iam_config() -> IAMConfig:
    return IAMConfig(enable_bedrock_access=True)


def _apply_vpc_defaults(vpc: VPCConfig) -> None:
    if vpc.create_vpc is None:
        vpc.create_vpc = not (vpc.vpc_id or "").strip()
    if not vpc.create_vpc:
        return
    if not vpc.vpc_cidr:
        vpc.vpc_cidr = DEFAULT_VPC_CIDR
    if vpc.max_azs is None:
        vpc.max_azs = DEFAULT_MAX_AZS


def _apply_observability_defaults(obs: ObservabilityConfig) -> None:
    if not obs.provider:
        obs.provider = DEFAULT_OBSERVABILITY_PROVIDER
    if obs.enable_cloud_watch_logs is None:
        obs.enable_cloud_watch_logs = True
    if not obs.log_retention_days:
        obs.log_retention_days = DEFAULT_LOG_RETENTION_DAYS


def apply_defaults(config: StackConfig) -> StackConfig:
    """Fill unset optional fields in place and return ``config``.

    Only ``None``/empty values are touched, so applying defaults twice is the
    same as applying them once. Explicit values (even invalid ones) are left
    alone for validation to report.
    """
    if config.vpc is None:
        config.vpc = default_vpc_config()
    else:
        _apply_vpc_defaults(config.vpc)

    if config.observability is None:
        config.observability = default_observability_config()
    else:
        _apply_observability_defaults(config.observability)

    if config.iam is None:
        config.iam = default_iam_config()
    elif config.iam.enable_bedrock_access is None:
        config.iam.enable_bedrock_access = True

    for agent in config.agents:
        if agent.memory_mb is None:
            agent.memory_mb = DEFAULT_MEMORY_MB
        if agent.timeout_seconds is None:
            agent.timeout_seconds = DEFAULT_TIMEOUT_SECONDS

    if not config.removal_policy:
        config.removal_policy = DEFAULT_REMOVAL_POLICY
    return config

from __future__ import annotations

import copy

from constructs import Construct

from agentcore_iac import (
    AgentConfig,
    IAMConfig,
    ObservabilityConfig,
    SecretsConfig,
    StackConfig,
    VPCConfig,
    apply_defaults,
    default_agent_config,
    default_iam_config,
    validate_stack_config,
)
from agentcore_iac.config import DEFAULT_LOG_RETENTION_DAYS

from .agentcore_stack import AgentCoreStack


class StackBuilder:
    """Fluent construction of a `StackConfig`.

    Each builder owns its accumulator: values passed in are copied, and
    `build()` hands back a copy, so two builders (or a builder and the configs
    it produced) never share mutable state. Nothing is validated until
    `validate()` or `build_stack()`.
    """

    def __init__(self, stack_name: str) -> None:
        self._config = StackConfig(stack_name=stack_name)

    def with_description(self, description: str) -> StackBuilder:
        self._config.description = description
        return self

    def with_agent(self, config: AgentConfig) -> StackBuilder:
        self._config.agents.append(copy.deepcopy(config))
        return self

    def with_agents(self, *configs: AgentConfig) -> StackBuilder:
        for c in configs:
            self.with_agent(c)
        return self

    def with_simple_agent(self, name: str, container_image: str) -> StackBuilder:
        return self.with_agent(default_agent_config(name, container_image))

    def with_default_agent(self, name: str, container_image: str) -> StackBuilder:
        config = default_agent_config(name, container_image)
        config.is_default = True
        return self.with_agent(config)

    def with_vpc(self, config: VPCConfig) -> StackBuilder:
        self._config.vpc = copy.deepcopy(config)
        return self

    def with_existing_vpc(self, vpc_id: str, subnet_ids: list[str]) -> StackBuilder:
        self._config.vpc = VPCConfig(create_vpc=False, vpc_id=vpc_id, subnet_ids=list(subnet_ids))
        return self

    def with_new_vpc(self, cidr: str, max_azs: int) -> StackBuilder:
        self._config.vpc = VPCConfig(
            create_vpc=True,
            vpc_cidr=cidr,
            max_azs=max_azs,
            enable_vpc_endpoints=True,
        )
        return self

    def with_secrets(self, config: SecretsConfig) -> StackBuilder:
        self._config.secrets = copy.deepcopy(config)
        return self

    def with_secret_values(self, values: dict[str, str]) -> StackBuilder:
        self._config.secrets = SecretsConfig(create_secrets=True, secret_values=dict(values))
        return self

    def with_observability(self, config: ObservabilityConfig) -> StackBuilder:
        self._config.observability = copy.deepcopy(config)
        return self

    def _with_tracing(self, provider: str, project: str, api_key_secret_ref: str) -> StackBuilder:
        self._config.observability = ObservabilityConfig(
            provider=provider,
            project=project,
            api_key_secret_ref=api_key_secret_ref,
            enable_cloud_watch_logs=True,
            log_retention_days=DEFAULT_LOG_RETENTION_DAYS,
        )
        return self

    def with_opik(self, project: str, api_key_secret_ref: str) -> StackBuilder:
        return self._with_tracing("opik", project, api_key_secret_ref)

    def with_langfuse(self, project: str, api_key_secret_ref: str) -> StackBuilder:
        return self._with_tracing("langfuse", project, api_key_secret_ref)

    def with_cloudwatch_only(self, retention_days: int) -> StackBuilder:
        self._config.observability = ObservabilityConfig(
            provider="cloudwatch",
            enable_cloud_watch_logs=True,
            log_retention_days=retention_days,
        )
        return self

    def with_iam(self, config: IAMConfig) -> StackBuilder:
        self._config.iam = copy.deepcopy(config)
        return self

    def with_existing_role(self, role_ref: str) -> StackBuilder:
        self._config.iam = IAMConfig(role_ref=role_ref)
        return self

    def with_bedrock_models(self, *model_ids: str) -> StackBuilder:
        if self._config.iam is None:
            self._config.iam = default_iam_config()
        self._config.iam.bedrock_model_ids = list(model_ids)
        return self

    def with_tags(self, tags: dict[str, str]) -> StackBuilder:
        self._config.tags.update(tags)
        return self

    def with_tag(self, key: str, value: str) -> StackBuilder:
        self._config.tags[key] = value
        return self

    def with_removal_policy(self, policy: str) -> StackBuilder:
        self._config.removal_policy = policy
        return self

    def retain_on_delete(self) -> StackBuilder:
        return self.with_removal_policy("retain")

    def destroy_on_delete(self) -> StackBuilder:
        return self.with_removal_policy("destroy")

    def build(self) -> StackConfig:
        """Return the accumulated (unvalidated, undefaulted) config."""
        return copy.deepcopy(self._config)

    def validate(self) -> None:
        validate_stack_config(apply_defaults(self.build()))

    def build_stack(self, scope: Construct, construct_id: str | None = None, **kwargs) -> AgentCoreStack:
        return AgentCoreStack(
            scope,
            construct_id or self._config.stack_name,
            config=self.build(),
            **kwargs,
        )

    def must_build_stack(self, scope: Construct, construct_id: str | None = None, **kwargs) -> AgentCoreStack:
        """Like `build_stack`, but any failure aborts the process."""
        try:
            return self.build_stack(scope, construct_id, **kwargs)
        except Exception as e:
            raise SystemExit(f"failed to build stack {self._config.stack_name!r}: {e}") from e


class AgentBuilder:
    def __init__(self, name: str, container_image: str) -> None:
        self._config = default_agent_config(name, container_image)

    def with_description(self, description: str) -> AgentBuilder:
        self._config.description = description
        return self

    def with_memory(self, memory_mb: int) -> AgentBuilder:
        self._config.memory_mb = memory_mb
        return self

    def with_timeout(self, timeout_seconds: int) -> AgentBuilder:
        self._config.timeout_seconds = timeout_seconds
        return self

    def with_environment(self, env: dict[str, str]) -> AgentBuilder:
        self._config.environment.update(env)
        return self

    def with_env_var(self, key: str, value: str) -> AgentBuilder:
        self._config.environment[key] = value
        return self

    def with_secrets(self, *secret_arns: str) -> AgentBuilder:
        self._config.secrets_arns.extend(secret_arns)
        return self

    def as_default(self) -> AgentBuilder:
        self._config.is_default = True
        return self

    def build(self) -> AgentConfig:
        return copy.deepcopy(self._config)

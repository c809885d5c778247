import sys
from pathlib import Path

import pytest
from aws_cdk import App

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from agentcore_iac import (
    AgentConfig,
    ObservabilityConfig,
    ValidationError,
    VPCConfig,
)
from stacks.builder import AgentBuilder, StackBuilder


@pytest.fixture(autouse=True)
def _quiet(monkeypatch):
    monkeypatch.setenv("AGENTCORE_QUIET", "1")


def test_builder_accumulates_config():
    cfg = (
        StackBuilder("team")
        .with_description("stats team")
        .with_simple_agent("research", "img/research")
        .with_default_agent("orchestration", "img/orch")
        .with_new_vpc("10.2.0.0/16", 3)
        .with_langfuse("team", "langfuse-key")
        .with_bedrock_models("anthropic.claude-3-haiku-20240307-v1:0")
        .with_tags({"Team": "ai"})
        .with_tag("Env", "dev")
        .retain_on_delete()
        .build()
    )

    assert cfg.stack_name == "team"
    assert cfg.description == "stats team"
    assert [a.name for a in cfg.agents] == ["research", "orchestration"]
    assert cfg.agents[0].memory_mb == 512
    assert cfg.agents[0].timeout_seconds == 30
    assert cfg.default_agent().name == "orchestration"
    assert cfg.vpc == VPCConfig(create_vpc=True, vpc_cidr="10.2.0.0/16", max_azs=3, enable_vpc_endpoints=True)
    assert cfg.observability.provider == "langfuse"
    assert cfg.observability.api_key_secret_ref == "langfuse-key"
    assert cfg.observability.log_retention_days == 30
    assert cfg.iam.enable_bedrock_access is True
    assert cfg.iam.bedrock_model_ids == ["anthropic.claude-3-haiku-20240307-v1:0"]
    assert cfg.tags == {"Team": "ai", "Env": "dev"}
    assert cfg.removal_policy == "retain"


def test_build_is_not_validated_or_defaulted():
    cfg = StackBuilder("").build()
    assert cfg.agents == []
    assert cfg.vpc is None
    assert cfg.removal_policy == ""


def test_validate_applies_defaults_then_checks():
    StackBuilder("team").with_simple_agent("a", "img").validate()

    with pytest.raises(ValidationError) as ei:
        StackBuilder("team").validate()
    assert ei.value.codes == ["agents-required"]


def test_builder_does_not_alias_inputs():
    agent = AgentConfig(name="a", container_image="img", environment={"K": "v"})
    tags = {"Team": "ai"}
    builder = StackBuilder("team").with_agent(agent).with_tags(tags)

    agent.environment["K"] = "changed"
    tags["Team"] = "changed"

    cfg = builder.build()
    assert cfg.agents[0].environment == {"K": "v"}
    assert cfg.tags == {"Team": "ai"}


def test_build_returns_independent_copies():
    builder = StackBuilder("team").with_simple_agent("a", "img")
    first = builder.build()
    first.agents[0].name = "mutated"
    first.tags["X"] = "y"

    second = builder.build()
    assert second.agents[0].name == "a"
    assert second.tags == {}


def test_two_builders_do_not_share_state():
    one = StackBuilder("one").with_tag("K", "1")
    two = StackBuilder("two").with_tag("K", "2")
    assert one.build().tags == {"K": "1"}
    assert two.build().tags == {"K": "2"}


def test_existing_vpc_and_role():
    cfg = (
        StackBuilder("team")
        .with_simple_agent("a", "img")
        .with_existing_vpc("vpc-123", ["subnet-a"])
        .with_existing_role("arn:aws:iam::123456789012:role/agents")
        .build()
    )
    assert cfg.vpc.create_vpc is False
    assert cfg.vpc.vpc_id == "vpc-123"
    assert cfg.vpc.subnet_ids == ["subnet-a"]
    assert cfg.iam.role_ref == "arn:aws:iam::123456789012:role/agents"


def test_bedrock_models_keep_existing_iam_settings():
    cfg = (
        StackBuilder("team")
        .with_existing_role("agents")
        .with_bedrock_models("m1", "m2")
        .build()
    )
    assert cfg.iam.role_ref == "agents"
    assert cfg.iam.bedrock_model_ids == ["m1", "m2"]


def test_later_observability_call_wins():
    cfg = (
        StackBuilder("team")
        .with_opik("p", "opik-key")
        .with_cloudwatch_only(7)
        .build()
    )
    assert cfg.observability == ObservabilityConfig(
        provider="cloudwatch", enable_cloud_watch_logs=True, log_retention_days=7
    )


def test_secret_values_enable_secret_creation():
    cfg = StackBuilder("team").with_secret_values({"k": "v"}).build()
    assert cfg.secrets.create_secrets is True
    assert cfg.secrets.secret_values == {"k": "v"}


def test_build_stack_uses_stack_name_as_construct_id():
    app = App()
    stack = StackBuilder("team").with_simple_agent("a", "img").build_stack(app)

    assert stack.node.id == "team"
    assert stack.phase == "translated"
    assert stack.config.removal_policy == "destroy"


def test_build_stack_rejects_invalid_config():
    app = App()
    with pytest.raises(ValidationError):
        StackBuilder("team").with_simple_agent("a", "img").with_removal_policy("keep").build_stack(app)
    assert not app.node.children


def test_must_build_stack_exits_on_invalid_config():
    with pytest.raises(SystemExit) as ei:
        StackBuilder("team").must_build_stack(App())
    assert "agents-required" in str(ei.value.code)


def test_agent_builder():
    agent = (
        AgentBuilder("research", "img/research")
        .with_description("Research agent")
        .with_memory(1024)
        .with_timeout(120)
        .with_environment({"A": "1"})
        .with_env_var("B", "2")
        .with_secrets("arn:s1", "arn:s2")
        .as_default()
        .build()
    )
    assert agent == AgentConfig(
        name="research",
        container_image="img/research",
        description="Research agent",
        memory_mb=1024,
        timeout_seconds=120,
        environment={"A": "1", "B": "2"},
        secrets_arns=["arn:s1", "arn:s2"],
        is_default=True,
    )


def test_agent_builder_defaults_and_copies():
    builder = AgentBuilder("a", "img")
    first = builder.build()
    assert first.memory_mb == 512
    assert first.timeout_seconds == 30
    assert first.is_default is False

    first.environment["X"] = "1"
    assert builder.build().environment == {}

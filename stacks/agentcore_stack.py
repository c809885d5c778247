import copy
import hashlib
import json
import os
import re
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from aws_cdk import (
    Aws,
    CfnOutput,
    Fn,
    RemovalPolicy,
    SecretValue,
    Stack,
    Tags,
    aws_ec2 as ec2,
    aws_iam as iam,
    aws_logs as logs,
    aws_secretsmanager as secretsmanager,
)
from constructs import Construct

from agentcore_iac import (
    StackConfig,
    TranslationError,
    apply_defaults,
    load_stack_config_from_file,
    validate_stack_config,
)

MANAGED_BY = "agentcore-iac"

PHASE_VALIDATED = "validated"
PHASE_TRANSLATING = "translating"
PHASE_TRANSLATED = "translated"

_RETENTION = {
    1: logs.RetentionDays.ONE_DAY,
    3: logs.RetentionDays.THREE_DAYS,
    5: logs.RetentionDays.FIVE_DAYS,
    7: logs.RetentionDays.ONE_WEEK,
    14: logs.RetentionDays.TWO_WEEKS,
    30: logs.RetentionDays.ONE_MONTH,
    60: logs.RetentionDays.TWO_MONTHS,
    90: logs.RetentionDays.THREE_MONTHS,
    120: logs.RetentionDays.FOUR_MONTHS,
    150: logs.RetentionDays.FIVE_MONTHS,
    180: logs.RetentionDays.SIX_MONTHS,
    365: logs.RetentionDays.ONE_YEAR,
    400: logs.RetentionDays.THIRTEEN_MONTHS,
    545: logs.RetentionDays.EIGHTEEN_MONTHS,
    731: logs.RetentionDays.TWO_YEARS,
    1096: logs.RetentionDays.THREE_YEARS,
    1827: logs.RetentionDays.FIVE_YEARS,
    2192: logs.RetentionDays.SIX_YEARS,
    2557: logs.RetentionDays.SEVEN_YEARS,
    2922: logs.RetentionDays.EIGHT_YEARS,
    3288: logs.RetentionDays.NINE_YEARS,
    3653: logs.RetentionDays.TEN_YEARS,
}

# Interface endpoints agents need to pull images, ship logs, read secrets and
# call Bedrock without leaving the VPC.
_INTERFACE_ENDPOINTS = (
    ("EcrApiEndpoint", ec2.InterfaceVpcEndpointAwsService.ECR),
    ("EcrDockerEndpoint", ec2.InterfaceVpcEndpointAwsService.ECR_DOCKER),
    ("LogsEndpoint", ec2.InterfaceVpcEndpointAwsService.CLOUDWATCH_LOGS),
    ("SecretsManagerEndpoint", ec2.InterfaceVpcEndpointAwsService.SECRETS_MANAGER),
    ("BedrockRuntimeEndpoint", ec2.InterfaceVpcEndpointAwsService.BEDROCK_RUNTIME),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _quiet() -> bool:
    return (os.getenv("AGENTCORE_QUIET") or "").strip().lower() in {"1", "true", "yes"}


def _logical_suffix(name: str) -> str:
    """CamelCased name plus a short digest, so "api-key" and "api_key" stay distinct."""
    parts = re.split(r"[^A-Za-z0-9]+", name)
    readable = "".join(p[:1].upper() + p[1:] for p in parts if p) or "Value"
    return readable + hashlib.sha256(name.encode("utf-8")).hexdigest()[:8]


class AgentCoreStack(Stack):
    """
    One CloudFormation stack per agent deployment config.

    The config is defaulted and validated before the stack construct exists,
    so an invalid config never registers any resource. Resources are then
    declared in a fixed order:
    - network (new VPC, or the imported existing VPC)
    - security group shared by all agents
    - Secrets Manager secrets (when requested)
    - execution role (imported when iam.roleRef is set)
    - CloudWatch log group (when CloudWatch logs are enabled)
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: StackConfig,
        **kwargs,
    ) -> None:
        # Private copy: the caller's config is never mutated.
        config = apply_defaults(copy.deepcopy(config))
        validate_stack_config(config)

        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        self.phase = PHASE_VALIDATED
        self.translated_resources: list[str] = []
        self.outputs: dict[str, Any] = {}

        self.vpc: ec2.IVpc | None = None
        self.private_subnet_id: str | None = None
        self.security_group: ec2.SecurityGroup | None = None
        self.secrets: dict[str, secretsmanager.Secret] = {}
        self.execution_role: iam.IRole | None = None
        self.execution_policy: iam.ManagedPolicy | None = None
        self.log_group: logs.LogGroup | None = None

        for key, value in sorted(config.tags.items()):
            Tags.of(self).add(key, value)
        Tags.of(self).add("ManagedBy", MANAGED_BY)

        start = time.time()
        wide_event: dict[str, Any] = {
            "event": "agentcore.stack.translate",
            "ts": _now_iso(),
            "stack": config.stack_name,
            "agents": [a.name for a in config.agents],
        }
        self.phase = PHASE_TRANSLATING
        try:
            self._translate("network", self._create_network)
            self._translate("security-group", self._create_security_group)
            if config.secrets is not None and config.secrets.create_secrets:
                self._translate("secrets", self._create_secrets)
            self._translate("execution-role", self._create_execution_role)
            if config.observability.enable_cloud_watch_logs:
                self._translate("log-group", self._create_log_group)
            self._translate("outputs", self._export_outputs)
            self.phase = PHASE_TRANSLATED
            wide_event["outcome"] = "success"
        except TranslationError as exc:
            wide_event["outcome"] = "error"
            wide_event["error"] = {
                "resource": exc.resource,
                "type": type(exc.cause).__name__,
                "message": str(exc.cause),
            }
            raise
        finally:
            wide_event["resources"] = list(self.translated_resources)
            wide_event["duration_ms"] = int((time.time() - start) * 1000)
            if not _quiet():
                print(json.dumps(wide_event, separators=(",", ":"), sort_keys=True), file=sys.stderr)

    def _translate(self, resource: str, create: Callable[[], None]) -> None:
        try:
            create()
        except TranslationError:
            raise
        except Exception as e:
            raise TranslationError(resource, e) from e
        self.translated_resources.append(resource)

    def _removal_policy(self) -> RemovalPolicy:
        if self.config.removal_policy == "retain":
            return RemovalPolicy.RETAIN
        return RemovalPolicy.DESTROY

    def _name(self, suffix: str) -> str:
        return f"{self.config.stack_name}-{suffix}"

    def _create_network(self) -> None:
        vpc_cfg = self.config.vpc
        if not vpc_cfg.create_vpc:
            subnet_ids = [s.strip() for s in vpc_cfg.subnet_ids if s.strip()]
            # One placeholder AZ per subnet; the real AZs are resolved at deploy time.
            self.vpc = ec2.Vpc.from_vpc_attributes(
                self,
                "Vpc",
                vpc_id=vpc_cfg.vpc_id.strip(),
                availability_zones=[Fn.select(i, Fn.get_azs()) for i in range(len(subnet_ids))],
                private_subnet_ids=subnet_ids,
            )
            self.private_subnet_id = subnet_ids[0]
            return

        vpc = ec2.Vpc(
            self,
            "Vpc",
            vpc_name=self._name("vpc"),
            ip_addresses=ec2.IpAddresses.cidr(vpc_cfg.vpc_cidr),
            max_azs=vpc_cfg.max_azs,
            nat_gateways=1,
            enable_dns_hostnames=True,
            enable_dns_support=True,
            subnet_configuration=[
                ec2.SubnetConfiguration(name="public", subnet_type=ec2.SubnetType.PUBLIC),
                ec2.SubnetConfiguration(
                    name="private", subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS
                ),
            ],
        )
        Tags.of(vpc).add("Name", self._name("vpc"))

        if vpc_cfg.enable_vpc_endpoints:
            vpc.add_gateway_endpoint(
                "S3Endpoint",
                service=ec2.GatewayVpcEndpointAwsService.S3,
            )
            for endpoint_id, service in _INTERFACE_ENDPOINTS:
                vpc.add_interface_endpoint(
                    endpoint_id,
                    service=service,
                    private_dns_enabled=True,
                    subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
                )

        self.vpc = vpc
        self.private_subnet_id = vpc.private_subnets[0].subnet_id

    def _create_security_group(self) -> None:
        stack_name = self.config.stack_name
        sg = ec2.SecurityGroup(
            self,
            "SecurityGroup",
            vpc=self.vpc,
            security_group_name=self._name("sg"),
            description=f"Security group for {stack_name} AgentCore agents",
            allow_all_outbound=True,
        )
        sg.add_ingress_rule(
            peer=sg,
            connection=ec2.Port.all_traffic(),
            description="Allow communication between agents",
        )
        Tags.of(sg).add("Name", self._name("sg"))
        self.security_group = sg

    def _create_secrets(self) -> None:
        removal_policy = self._removal_policy()
        for name, value in sorted(self.config.secrets.secret_values.items()):
            secret = secretsmanager.Secret(
                self,
                f"Secret{_logical_suffix(name)}",
                secret_name=f"{self.config.stack_name}/{name}",
                secret_string_value=SecretValue.unsafe_plain_text(value),
                removal_policy=removal_policy,
            )
            Tags.of(secret).add("Name", f"{self.config.stack_name}/{name}")
            self.secrets[name] = secret

    def _secret_arns(self) -> list[str]:
        refs: set[str] = set()
        for agent in self.config.agents:
            refs.update(a.strip() for a in agent.secrets_arns if a.strip())
        api_key_ref = (self.config.observability.api_key_secret_ref or "").strip()
        if api_key_ref:
            refs.add(api_key_ref)

        arns: list[str] = []
        for ref in sorted(refs):
            if ref.startswith("arn:"):
                arns.append(ref)
            else:
                # Secret names resolve to ARNs with a random 6-char suffix.
                arns.append(
                    f"arn:{Aws.PARTITION}:secretsmanager:{Aws.REGION}:{Aws.ACCOUNT_ID}:secret:{ref}-*"
                )
        return arns

    def _policy_statements(self) -> list[iam.PolicyStatement]:
        iam_cfg = self.config.iam
        statements = [
            iam.PolicyStatement(
                actions=[
                    "logs:CreateLogGroup",
                    "logs:CreateLogStream",
                    "logs:PutLogEvents",
                ],
                resources=[f"arn:{Aws.PARTITION}:logs:*:*:*"],
            ),
            iam.PolicyStatement(
                actions=[
                    "ecr:GetAuthorizationToken",
                    "ecr:BatchCheckLayerAvailability",
                    "ecr:GetDownloadUrlForLayer",
                    "ecr:BatchGetImage",
                ],
                resources=["*"],
            ),
        ]

        if iam_cfg.enable_bedrock_access:
            model_ids = [m.strip() for m in iam_cfg.bedrock_model_ids if m.strip()] or ["*"]
            statements.append(
                iam.PolicyStatement(
                    actions=[
                        "bedrock:InvokeModel",
                        "bedrock:InvokeModelWithResponseStream",
                    ],
                    resources=[
                        f"arn:{Aws.PARTITION}:bedrock:*::foundation-model/{model_id}"
                        for model_id in model_ids
                    ],
                )
            )

        secret_arns = self._secret_arns()
        if secret_arns:
            statements.append(
                iam.PolicyStatement(
                    actions=["secretsmanager:GetSecretValue"],
                    resources=secret_arns,
                )
            )
        return statements

    def _create_execution_role(self) -> None:
        role_ref = (self.config.iam.role_ref or "").strip()
        if role_ref:
            if role_ref.startswith("arn:"):
                self.execution_role = iam.Role.from_role_arn(
                    self, "ExecutionRole", role_ref, mutable=False
                )
            else:
                self.execution_role = iam.Role.from_role_name(self, "ExecutionRole", role_ref)
            return

        stack_name = self.config.stack_name
        role = iam.Role(
            self,
            "ExecutionRole",
            role_name=self._name("execution-role"),
            description=f"Execution role for {stack_name} AgentCore agents",
            assumed_by=iam.CompositePrincipal(
                iam.ServicePrincipal("bedrock.amazonaws.com"),
                iam.ServicePrincipal("lambda.amazonaws.com"),
            ),
        )
        Tags.of(role).add("Name", self._name("execution-role"))

        self.execution_policy = iam.ManagedPolicy(
            self,
            "ExecutionPolicy",
            managed_policy_name=self._name("execution-policy"),
            description=f"Execution policy for {stack_name} AgentCore agents",
            statements=self._policy_statements(),
            roles=[role],
        )
        for secret in self.secrets.values():
            secret.grant_read(role)
        self.execution_role = role

    def _create_log_group(self) -> None:
        days = self.config.observability.log_retention_days
        log_group_name = f"/aws/agentcore/{self.config.stack_name}"
        self.log_group = logs.LogGroup(
            self,
            "LogGroup",
            log_group_name=log_group_name,
            retention=_RETENTION[days],
            removal_policy=self._removal_policy(),
        )
        Tags.of(self.log_group).add("Name", self._name("logs"))

    def _output(self, key: str, value: Any, description: str) -> None:
        CfnOutput(self, key, value=value, description=description)
        self.outputs[key] = value

    def _export_outputs(self) -> None:
        self._output("VpcId", self.vpc.vpc_id, "VPC the agents run in.")
        self._output("PrivateSubnetId", self.private_subnet_id, "Private subnet for agent ENIs.")
        self._output("SecurityGroupId", self.security_group.security_group_id, "Agent security group.")
        self._output("ExecutionRoleArn", self.execution_role.role_arn, "Agent execution role ARN.")
        if self.log_group is not None:
            self._output("LogGroupName", self.log_group.log_group_name, "Agent CloudWatch log group.")
        self._output("AgentCount", str(len(self.config.agents)), "Number of agents in the stack.")


def new_stack_from_file(
    scope: Construct,
    construct_id: str,
    config_path: str | Path,
    **kwargs,
) -> AgentCoreStack:
    config = load_stack_config_from_file(config_path)
    return AgentCoreStack(scope, construct_id, config=config, **kwargs)


def must_new_stack_from_file(
    scope: Construct,
    construct_id: str,
    config_path: str | Path,
    **kwargs,
) -> AgentCoreStack:
    """Like `new_stack_from_file`, but any failure aborts the process."""
    try:
        return new_stack_from_file(scope, construct_id, config_path, **kwargs)
    except Exception as e:
        raise SystemExit(f"failed to create stack from {config_path}: {e}") from e

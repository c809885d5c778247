"""Configuration model, loader and validation for AgentCore stacks.

The model is provisioning-engine agnostic; `stacks.agentcore_stack` turns a
validated `StackConfig` into CDK constructs.
"""

from .config import (
    DEFAULT_LOG_RETENTION_DAYS,
    DEFAULT_MAX_AZS,
    DEFAULT_REMOVAL_POLICY,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_VPC_CIDR,
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
    apply_defaults,
    default_agent_config,
    default_iam_config,
    default_observability_config,
    default_vpc_config,
)
from .errors import (
    AgentCoreError,
    DocumentParseError,
    SchemaError,
    TranslationError,
    ValidationError,
    ValidationIssue,
)
from .loader import (
    convert_json_to_yaml,
    convert_yaml_to_json,
    dump_stack_config_json,
    dump_stack_config_yaml,
    json_config_example,
    load_stack_config_from_file,
    load_stack_config_from_json,
    load_stack_config_from_yaml,
    stack_config_from_dict,
    stack_config_to_dict,
    write_example_config,
    yaml_config_example,
)
from .validation import ValidationResult, check_stack_config, validate_stack_config

__all__ = [
    "__version__",
    "DEFAULT_LOG_RETENTION_DAYS",
    "DEFAULT_MAX_AZS",
    "DEFAULT_REMOVAL_POLICY",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_VPC_CIDR",
    "MAX_TIMEOUT_SECONDS",
    "VALID_LOG_RETENTION_DAYS",
    "VALID_MEMORY_VALUES",
    "VALID_OBSERVABILITY_PROVIDERS",
    "VALID_REMOVAL_POLICIES",
    "AgentConfig",
    "IAMConfig",
    "ObservabilityConfig",
    "SecretsConfig",
    "StackConfig",
    "VPCConfig",
    "apply_defaults",
    "default_agent_config",
    "default_iam_config",
    "default_observability_config",
    "default_vpc_config",
    "AgentCoreError",
    "DocumentParseError",
    "SchemaError",
    "TranslationError",
    "ValidationError",
    "ValidationIssue",
    "ValidationResult",
    "check_stack_config",
    "validate_stack_config",
    "convert_json_to_yaml",
    "convert_yaml_to_json",
    "dump_stack_config_json",
    "dump_stack_config_yaml",
    "json_config_example",
    "load_stack_config_from_file",
    "load_stack_config_from_json",
    "load_stack_config_from_yaml",
    "stack_config_from_dict",
    "stack_config_to_dict",
    "write_example_config",
    "yaml_config_example",
]

__version__ = "0.1.0"

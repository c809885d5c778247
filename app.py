#!/usr/bin/env python3
import os

import aws_cdk as cdk

from agentcore_iac import load_stack_config_from_file
from stacks.agentcore_stack import AgentCoreStack

app = cdk.App()

config_path = (os.getenv("AGENTCORE_CONFIG") or "agentcore.yaml").strip()
config = load_stack_config_from_file(config_path)

stack_name = (os.getenv("AGENTCORE_STACK_NAME") or config.stack_name).strip()

AgentCoreStack(
    app,
    stack_name,
    config=config,
    env=cdk.Environment(
        account=os.getenv("CDK_DEFAULT_ACCOUNT"),
        region=os.getenv("CDK_DEFAULT_REGION", "us-east-1"),
    ),
)

app.synth()

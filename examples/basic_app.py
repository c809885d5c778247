#!/usr/bin/env python3
"""Builder-based CDK app for a four-agent statistics team.

Deploy from the repo root with:

    cdk deploy --app "python3 examples/basic_app.py"
"""
import os
import sys
from pathlib import Path

import aws_cdk as cdk

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stacks.builder import AgentBuilder, StackBuilder

app = cdk.App()

research = (
    AgentBuilder("research", "ghcr.io/agentplexus/stats-research:latest")
    .with_description("Research agent - web search via Serper")
    .with_memory(512)
    .with_timeout(30)
    .with_env_var("LOG_LEVEL", "info")
    .build()
)
synthesis = (
    AgentBuilder("synthesis", "ghcr.io/agentplexus/stats-synthesis:latest")
    .with_description("Synthesis agent - extract statistics from URLs")
    .with_memory(1024)
    .with_timeout(120)
    .build()
)
verification = (
    AgentBuilder("verification", "ghcr.io/agentplexus/stats-verification:latest")
    .with_description("Verification agent - validate sources")
    .with_memory(512)
    .with_timeout(60)
    .build()
)
orchestration = (
    AgentBuilder("orchestration", "ghcr.io/agentplexus/stats-orchestration:latest")
    .with_description("Orchestration agent - coordinate workflow")
    .with_memory(512)
    .with_timeout(300)
    .as_default()
    .build()
)

(
    StackBuilder("stats-agent-team")
    .with_description("Statistics research and verification multi-agent system")
    .with_agents(research, synthesis, verification, orchestration)
    .with_new_vpc("10.0.0.0/16", 2)
    .with_opik(
        "stats-agent-team",
        "arn:aws:secretsmanager:us-east-1:123456789012:secret:opik-key",
    )
    .with_tags(
        {
            "Project": "stats-agent-team",
            "Environment": "production",
            "Team": "ai-platform",
        }
    )
    .must_build_stack(
        app,
        env=cdk.Environment(
            account=os.getenv("CDK_DEFAULT_ACCOUNT"),
            region=os.getenv("CDK_DEFAULT_REGION", "us-east-1"),
        ),
    )
)

app.synth()

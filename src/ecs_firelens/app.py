"""
CDK application factory.

The repository root app.py (run by the cdk CLI through cdk.json) and the
DeploymentRunner both build the application through build_app().
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import aws_cdk as cdk

from .config import DeploymentConfig, load_project_config
from .stacks import FirelensStack

logger = logging.getLogger(__name__)


def resolve_environment(app: cdk.App, config: DeploymentConfig) -> cdk.Environment:
    """
    Build the stack environment.

    The account comes from the "account" context value, falling back to
    CDK_DEFAULT_ACCOUNT; the region always comes from configuration.
    """
    account = app.node.try_get_context("account") or os.environ.get("CDK_DEFAULT_ACCOUNT")
    return cdk.Environment(account=account, region=config.region.value)


def build_app(
    project_root: Path,
    config: DeploymentConfig | None = None,
    outdir: Path | None = None,
) -> tuple[cdk.App, FirelensStack]:
    """
    Create the CDK app and its single stack.

    Args:
        project_root: Directory holding firelens.toml
        config: Deployment configuration (loaded from project_root if None)
        outdir: Cloud assembly directory (CDK default when None)

    Returns:
        Tuple of (app, stack)
    """
    if config is None:
        config = load_project_config(project_root)

    app = cdk.App(outdir=str(outdir) if outdir else None)

    stack_name = config.get_stack_name()
    logger.info("Declaring stack %s in %s", stack_name, config.region.value)

    stack = FirelensStack(
        app,
        stack_name,
        config=config,
        project_root=project_root,
        env=resolve_environment(app, config),
        description=f"{config.app_name} ({config.environment}): ECS service with FireLens log delivery",
    )
    cdk.Tags.of(stack).add("Application", config.sanitized_app_name())
    cdk.Tags.of(stack).add("Environment", config.environment)

    return app, stack

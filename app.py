#!/usr/bin/env python3
"""
CDK application for ecs-firelens.

Deployment:
    pip install -e .
    cdk bootstrap         # One-time setup per account/region
    cdk deploy            # Deploy the stack
    cdk destroy           # Tear down the stack
"""

from pathlib import Path

from ecs_firelens.app import build_app

app, _ = build_app(Path(__file__).resolve().parent)

app.synth()

"""
Helpers for reading a synthesized cloud assembly.

Loads CloudFormation templates and file asset manifests from a cdk.out
directory and flattens the intrinsic functions CDK emits for string values.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetRecord:
    """A file asset published to the bootstrap bucket at deploy time."""

    asset_hash: str
    source_path: str
    packaging: str
    bucket_name: str
    object_key: str

    @property
    def s3_arn(self) -> str:
        """ARN of the published object."""
        return f"arn:aws:s3:::{self.bucket_name}/{self.object_key}"

    @property
    def is_template(self) -> bool:
        """Check if this asset is the stack template itself."""
        return self.source_path.endswith(".template.json")

    @property
    def is_uploaded_file(self) -> bool:
        """Check if this asset is a single uploaded file (not a zipped directory)."""
        return self.packaging == "file" and not self.is_template


def load_templates(assembly_dir: Path) -> dict[str, dict[str, Any]]:
    """Load all CloudFormation templates keyed by stack name."""
    templates: dict[str, dict[str, Any]] = {}
    for template_file in sorted(assembly_dir.glob("*.template.json")):
        with open(template_file) as f:
            templates[template_file.name.removesuffix(".template.json")] = json.load(f)
    return templates


def load_asset_manifests(
    assembly_dir: Path, stack_ids: Iterable[str] | None = None
) -> list[AssetRecord]:
    """
    Load file assets from the asset manifests in the assembly.

    With stack_ids, only <artifact id>.assets.json of those stacks is read;
    otherwise every manifest in the directory is.
    """
    records: list[AssetRecord] = []

    if stack_ids is None:
        manifest_files = sorted(assembly_dir.glob("*.assets.json"))
    else:
        manifest_files = [assembly_dir / f"{stack_id}.assets.json" for stack_id in stack_ids]
        manifest_files = [path for path in manifest_files if path.is_file()]

    for manifest_file in manifest_files:
        with open(manifest_file) as f:
            manifest = json.load(f)

        for asset_hash, entry in manifest.get("files", {}).items():
            source = entry.get("source", {})
            for destination in entry.get("destinations", {}).values():
                records.append(
                    AssetRecord(
                        asset_hash=asset_hash,
                        source_path=source.get("path", ""),
                        packaging=source.get("packaging", "file"),
                        bucket_name=destination.get("bucketName", ""),
                        object_key=destination.get("objectKey", ""),
                    )
                )

    logger.debug("Loaded %d file asset destinations from %s", len(records), assembly_dir)
    return records


def render_value(value: Any) -> str:
    """
    Flatten a CloudFormation string value into text.

    Fn::Join is expanded, Fn::Sub keeps its template string, Ref and
    Fn::GetAtt become ${...} placeholders.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, dict) and len(value) == 1:
        fn, args = next(iter(value.items()))
        if fn == "Fn::Join":
            delimiter, parts = args
            return delimiter.join(render_value(p) for p in parts)
        if fn == "Fn::Sub":
            return args if isinstance(args, str) else args[0]
        if fn == "Ref":
            return f"${{{args}}}"
        if fn == "Fn::GetAtt":
            target = args if isinstance(args, str) else ".".join(args)
            return f"${{{target}}}"
    return json.dumps(value, sort_keys=True)


def referenced_logical_id(value: Any) -> str | None:
    """Get the logical ID a Ref or Fn::GetAtt value points to."""
    if isinstance(value, dict):
        if "Ref" in value:
            return value["Ref"]
        if "Fn::GetAtt" in value:
            args = value["Fn::GetAtt"]
            return args[0] if isinstance(args, list) else args.split(".")[0]
    return None


def resources_of_type(template: dict[str, Any], resource_type: str) -> dict[str, dict[str, Any]]:
    """Get resources of one CloudFormation type keyed by logical ID."""
    return {
        logical_id: resource
        for logical_id, resource in template.get("Resources", {}).items()
        if resource.get("Type") == resource_type
    }


def resource_counts(template: dict[str, Any]) -> dict[str, int]:
    """Count resources by CloudFormation type."""
    counts = Counter(
        resource.get("Type", "Unknown") for resource in template.get("Resources", {}).values()
    )
    return dict(sorted(counts.items()))

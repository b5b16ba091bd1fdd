"""kubeboot CLI - bootstrap declarative manifests from imperative kubectl commands.

This module provides the main CLI entrypoint for kubeboot, allowing users
to generate, patch, merge, validate and apply manifests from the command line.
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from kubeboot import __version__
from kubeboot.core.errors import KubebootError, ManifestError, ValidationFailed
from kubeboot.core.pipeline import (
    apply_artifacts,
    bootstrap,
    build_recipe,
    transform,
    write_outputs,
)
from kubeboot.core.recipe import load_recipe
from kubeboot.core.schema.patch_dsl import Patch
from kubeboot.k8s.artifact import ManifestArtifact
from kubeboot.k8s.generator import GENERATED_KINDS, GenerateRequest
from kubeboot.k8s.kubectl import DRY_RUN_MODES, Kubectl
from kubeboot.k8s.oracles import default_oracles, summarize, validate_artifact
from kubeboot.k8s.patch_dsl import parse_set_expression
from kubeboot.k8s.yamlio import load_document, load_fragment, to_plain

logger = logging.getLogger(__name__)

EPILOG = """
Examples:
  # Generate a deployment with resource limits and a ConfigMap volume
  kubeboot generate deployment frontend --image nginx --port 80 \\
      --set resources.limits=cpu=100m,memory=256Mi \\
      --merge fragments/frontend-volumes.yaml --out objects/frontend.deploy.yaml

  # Generate a ConfigMap from a file
  kubeboot generate configmap frontend-data --from-file index.html --out objects/frontend.cm.yaml

  # Set fields on an existing manifest in place
  kubeboot patch objects/frontend.deploy.yaml --set replicas=2 --in-place

  # Validate manifests, including the API schema
  kubeboot validate objects/ --schema

  # Build everything a recipe describes, then dry-run apply it
  kubeboot build kubeboot.recipe.yaml --apply --dry-run server
"""


def _add_transform_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--set",
        dest="set_exprs",
        action="append",
        default=[],
        metavar="EXPR",
        help="Field to set, e.g. replicas=3 or resources.limits=cpu=100m (repeatable)"
    )
    parser.add_argument(
        "--ops",
        dest="ops_file",
        help="YAML/JSON file holding a patch envelope {ops: [{op, args}]}"
    )
    parser.add_argument(
        "--merge",
        dest="fragments",
        action="append",
        default=[],
        metavar="FRAGMENT",
        help="YAML fragment file to merge into the result (repeatable)"
    )
    parser.add_argument(
        "--out",
        help="Output file (default: print to stdout)"
    )
    parser.add_argument(
        "--no-validate",
        action="store_true",
        help="Skip validation of the result"
    )
    parser.add_argument(
        "--schema",
        action="store_true",
        default=None,
        help="Also validate against the Kubernetes API schema"
    )
    parser.add_argument(
        "--no-strict",
        action="store_true",
        help="Write the result even if validation reports errors"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kubeboot",
        description="kubeboot - bootstrap declarative Kubernetes manifests from imperative kubectl commands",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Verbose output (-v info, -vv debug)"
    )
    parser.add_argument(
        "--config",
        help="Path to config file (default: $KUBEBOOT_CONFIG or kubeboot.json)"
    )
    parser.add_argument(
        "--kubectl",
        help="kubectl binary to use (overrides config)"
    )
    parser.add_argument(
        "--context",
        help="kubeconfig context passed to kubectl"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Generate command
    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate a manifest with kubectl --dry-run=client and finish it"
    )
    generate_parser.add_argument("kind", choices=sorted(GENERATED_KINDS), help="What to generate")
    generate_parser.add_argument("name", help="Object name")
    generate_parser.add_argument("--image", help="Container image (deployment)")
    generate_parser.add_argument("--port", type=int, help="Container or service port")
    generate_parser.add_argument("--replicas", type=int, help="Replica count (deployment)")
    generate_parser.add_argument("--target-port", type=int, help="Service target port")
    generate_parser.add_argument("--type", dest="service_type", default="ClusterIP",
                                 help="Service type: ClusterIP, NodePort or LoadBalancer")
    generate_parser.add_argument("--from-file", dest="from_files", action="append", default=[],
                                 help="File source for configmap/secret (repeatable)")
    generate_parser.add_argument("--from-literal", dest="from_literals", action="append", default=[],
                                 help="KEY=VALUE literal for configmap/secret (repeatable)")
    generate_parser.add_argument("--namespace", help="Namespace recorded on the object")
    generate_parser.add_argument("--source", help="Manifest file to expose (kind expose)")
    generate_parser.add_argument("--no-clean", action="store_true",
                                 help="Keep creationTimestamp, status and other generator noise")
    generate_parser.add_argument("--apply", action="store_true", help="Apply the result with kubectl")
    generate_parser.add_argument("--dry-run", choices=DRY_RUN_MODES,
                                 help="Dry-run mode for --apply")
    _add_transform_args(generate_parser)

    # Patch command
    patch_parser = subparsers.add_parser(
        "patch",
        help="Set fields and merge fragments into an existing manifest"
    )
    patch_parser.add_argument("input", help="Manifest file")
    patch_parser.add_argument("--in-place", action="store_true", help="Overwrite the input file")
    _add_transform_args(patch_parser)

    # Merge command
    merge_parser = subparsers.add_parser(
        "merge",
        help="Merge YAML fragments into a manifest"
    )
    merge_parser.add_argument("input", help="Base manifest file")
    merge_parser.add_argument("merge_fragments", nargs="+", metavar="FRAGMENT", help="Fragment files")
    merge_parser.add_argument("--out", help="Output file (default: print to stdout)")
    merge_parser.add_argument("--no-validate", action="store_true", help="Skip validation of the result")

    # Validate command
    validate_parser = subparsers.add_parser(
        "validate",
        help="Check that manifests are valid Kubernetes objects"
    )
    validate_parser.add_argument("paths", nargs="+", help="Manifest files or directories")
    validate_parser.add_argument("--schema", action="store_true", default=None,
                                 help="Also validate against the Kubernetes API schema")

    # Build command
    build_parser_ = subparsers.add_parser(
        "build",
        help="Build every resource described by a recipe file"
    )
    build_parser_.add_argument("recipe", help="Recipe YAML file")
    build_parser_.add_argument("--check", action="store_true",
                               help="Build and validate without writing outputs")
    build_parser_.add_argument("--apply", action="store_true", help="Apply the results with kubectl")
    build_parser_.add_argument("--dry-run", choices=DRY_RUN_MODES, help="Dry-run mode for --apply")
    build_parser_.add_argument("--no-strict", action="store_true",
                               help="Write results even if validation reports errors")

    # Apply command
    apply_parser = subparsers.add_parser(
        "apply",
        help="Apply manifest files with kubectl"
    )
    apply_parser.add_argument("paths", nargs="+", help="Manifest files")
    apply_parser.add_argument("--dry-run", choices=DRY_RUN_MODES, help="Render without persisting")
    apply_parser.add_argument("--schema", action="store_true", default=None,
                              help="Also validate against the Kubernetes API schema")

    return parser


def setup_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format='%(levelname)s: %(message)s')


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint for kubeboot."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if args.config:
        os.environ["KUBEBOOT_CONFIG"] = args.config

    handlers = {
        "generate": cmd_generate,
        "patch": cmd_patch,
        "merge": cmd_merge,
        "validate": cmd_validate,
        "build": cmd_build,
        "apply": cmd_apply,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except ValidationFailed as e:
        print("Error: validation failed", file=sys.stderr)
        _print_violations(e.violations)
        logger.debug("Validation failed", exc_info=True)
        return 1
    except (KubebootError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.debug(f"{args.command} failed", exc_info=True)
        return 1


def _kubectl(args) -> Kubectl:
    return Kubectl(binary=args.kubectl, context=args.context)


def _status(message: str) -> None:
    # stdout may carry manifests, keep status on stderr
    print(message, file=sys.stderr)


def _print_violations(violations) -> None:
    for v in violations:
        _status(f"  - {v}")


def _load_patch(args) -> Patch:
    ops = [parse_set_expression(expr) for expr in args.set_exprs]
    if args.ops_file:
        path = Path(args.ops_file)
        if not path.is_file():
            raise ManifestError(f"Ops file not found: {path}", source=str(path))
        envelope = to_plain(load_document(path.read_text(encoding="utf-8"), str(path)))
        try:
            ops.extend(Patch.from_dict(envelope).ops)
        except ValueError as e:
            raise ManifestError(f"{path}: {e}", source=str(path)) from e
    return Patch(ops=ops)


def _load_fragments(paths: List[str]) -> List[dict]:
    fragments = []
    for path in paths:
        for doc in load_fragment(Path(path)):
            if not isinstance(doc, dict):
                raise ManifestError(f"Fragment {path} must contain mappings", source=path)
            fragments.append(doc)
    return fragments


def _oracles(args):
    if getattr(args, "no_validate", False):
        return []
    return default_oracles(schema=args.schema)


def _emit(artifact: ManifestArtifact, out: Optional[str], metadata: dict) -> None:
    findings = list(metadata.get("violations", []))
    if findings:
        _status(f"{len(findings)} finding(s):")
        _print_violations(findings)
    if out:
        path = artifact.write_to(out)
        _status(f"✓ Wrote {path}")
    else:
        sys.stdout.write(artifact.as_text())


def cmd_generate(args) -> int:
    """Handle generate command."""
    source_manifest = None
    if args.source:
        source_manifest = Path(args.source).read_text(encoding="utf-8")

    request = GenerateRequest(
        kind=args.kind,
        name=args.name,
        image=args.image,
        port=args.port,
        replicas=args.replicas,
        target_port=args.target_port,
        service_type=args.service_type,
        from_files=tuple(args.from_files),
        from_literals=tuple(args.from_literals),
        namespace=args.namespace,
        source_manifest=source_manifest,
    )
    kubectl = _kubectl(args)

    artifact, metadata = bootstrap(
        request,
        patch=_load_patch(args),
        fragments=_load_fragments(args.fragments),
        kubectl=kubectl,
        clean=False if args.no_clean else None,
        oracles=_oracles(args),
        strict=not args.no_strict,
    )
    logger.info(f"Generated with: {' '.join(metadata['command'])}")
    _emit(artifact, args.out, metadata)

    if args.apply:
        for output in apply_artifacts([artifact], kubectl, dry_run=args.dry_run):
            _status(output.rstrip())
    return 0


def cmd_patch(args) -> int:
    """Handle patch command."""
    artifact = ManifestArtifact.from_file(args.input)
    patched, metadata = transform(
        artifact,
        patch=_load_patch(args),
        fragments=_load_fragments(args.fragments),
        oracles=_oracles(args),
        strict=not args.no_strict,
    )
    _emit(patched, args.input if args.in_place else args.out, metadata)
    return 0


def cmd_merge(args) -> int:
    """Handle merge command."""
    artifact = ManifestArtifact.from_file(args.input)
    merged, metadata = transform(
        artifact,
        fragments=_load_fragments(args.merge_fragments),
        oracles=[] if args.no_validate else default_oracles(),
    )
    _emit(merged, args.out, metadata)
    return 0


def _collect(paths: List[str]) -> ManifestArtifact:
    files = {}
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            for pattern in ("*.yaml", "*.yml"):
                for rel, content in ManifestArtifact.from_dir(str(path), pattern).files.items():
                    files[str(path / rel)] = content
        elif path.is_file():
            files[str(path)] = path.read_text(encoding="utf-8")
        else:
            raise ManifestError(f"No such file or directory: {path}", source=str(path))
    return ManifestArtifact(files=files)


def cmd_validate(args) -> int:
    """Handle validate command."""
    artifact = _collect(args.paths)
    if not artifact.files:
        _status("No manifests found")
        return 1

    violations = validate_artifact(artifact, default_oracles(schema=args.schema))
    counts = summarize(violations)
    _print_violations(violations)

    if counts["error"]:
        _status(f"❌ {len(artifact.files)} file(s): {counts['error']} error(s), {counts['warning']} warning(s)")
        return 1
    _status(f"✓ {len(artifact.files)} file(s) valid ({counts['warning']} warning(s))")
    return 0


def cmd_build(args) -> int:
    """Handle build command."""
    recipe = load_recipe(args.recipe)
    kubectl = _kubectl(args)
    _status(f"Building {len(recipe.resources)} resource(s) from {args.recipe}")

    results = build_recipe(recipe, kubectl, strict=not (args.no_strict or args.check))
    for resource, _, metadata in results:
        _status(f"  {resource.output}: {metadata['status']}")
        _print_violations(metadata["violations"])

    if args.check:
        return 1 if any(m["status"] != "success" for _, _, m in results) else 0

    for path in write_outputs(results):
        _status(f"✓ Wrote {path}")

    if args.apply:
        for output in apply_artifacts([a for _, a, _ in results], kubectl, dry_run=args.dry_run):
            _status(output.rstrip())
    return 0


def cmd_apply(args) -> int:
    """Handle apply command."""
    artifact = _collect(args.paths)
    violations = validate_artifact(artifact, default_oracles(schema=args.schema))
    if summarize(violations)["error"]:
        _status("Refusing to apply invalid manifests:")
        _print_violations(violations)
        return 1

    for output in apply_artifacts([artifact], _kubectl(args), dry_run=args.dry_run):
        sys.stdout.write(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())

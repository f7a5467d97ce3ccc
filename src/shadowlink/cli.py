"""shadowlink Command Line Interface.

Lists managed cluster objects and gets or creates shadow pods.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import TYPE_CHECKING, Any

import yaml
from kubernetes.client.rest import ApiException
from kubernetes.config import ConfigException

from shadowlink.config.settings import get_settings
from shadowlink.shadow.errors import ShadowWorkflowError, ensure_shadow_error
from shadowlink.version import __version__

if TYPE_CHECKING:
    from argparse import Namespace

    from shadowlink.shadow.inventory import ControlledResources


VERBOSITY_LEVELS = ("INFO", "DEBUG")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="shadowlink",
        description="shadowlink - shadow pods for tunnelling into Kubernetes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  shadowlink resources -n dev           List managed pods, deployments, services
  shadowlink shadow my-shadow --share   Reuse or create the shadow pod my-shadow
        """,
    )

    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for debug logs)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Resources command
    resources_parser = subparsers.add_parser(
        "resources", help="List cluster objects managed by shadowlink"
    )
    resources_parser.add_argument(
        "--namespace",
        "-n",
        type=str,
        default="",
        help="Kubernetes namespace (default: all namespaces)",
    )
    resources_parser.add_argument(
        "--output",
        "-o",
        choices=["table", "yaml"],
        default="table",
        help="Output format",
    )

    # Shadow command
    shadow_parser = subparsers.add_parser("shadow", help="Get or create a shadow pod")
    shadow_parser.add_argument("name", help="Shadow pod name")
    shadow_parser.add_argument(
        "--namespace",
        "-n",
        type=str,
        default=None,
        help="Kubernetes namespace (default: from settings)",
    )
    shadow_parser.add_argument(
        "--share",
        action="store_true",
        help="Reuse an existing shadow pod with the same name",
    )
    shadow_parser.add_argument(
        "--image",
        type=str,
        default=None,
        help="Shadow pod image",
    )
    shadow_parser.add_argument(
        "--label",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Label of the shadow pod (repeatable)",
    )
    shadow_parser.add_argument(
        "--env",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Environment variable of the shadow pod (repeatable)",
    )

    return parser


def _pairs(values: list[str]) -> dict[str, str]:
    """Parse repeated KEY=VALUE arguments, values are taken verbatim."""
    pairs: dict[str, str] = {}
    for item in values:
        key, _, value = item.partition("=")
        if key.strip():
            pairs[key.strip()] = value
    return pairs


def _configure(args: Namespace) -> None:
    from shadowlink.observability._logging import configure_logging

    settings = get_settings()
    if args.verbose:
        level = VERBOSITY_LEVELS[min(args.verbose, len(VERBOSITY_LEVELS) - 1)]
        settings.observability.log_level = level  # type: ignore[assignment]
    configure_logging(settings)


def _summarize(resources: ControlledResources) -> dict[str, list[dict[str, Any]]]:
    def _entry(obj: Any) -> dict[str, Any]:
        return {
            "name": obj.metadata.name,
            "namespace": obj.metadata.namespace,
            "labels": obj.metadata.labels or {},
        }

    return {
        "pods": [_entry(p) for p in resources.pods],
        "deployments": [_entry(d) for d in resources.deployments],
        "services": [_entry(s) for s in resources.services],
    }


def list_resources(args: Namespace) -> int:
    """List pods, deployments and services carrying the control label."""
    from shadowlink.shadow.orchestrator import get_shadow_orchestrator

    orchestrator = get_shadow_orchestrator()
    resources = asyncio.run(orchestrator.list_controlled_resources(args.namespace))
    summary = _summarize(resources)

    if args.output == "yaml":
        print(yaml.safe_dump(summary, sort_keys=False), end="")
        return 0

    print(f"{'KIND':<12}{'NAMESPACE':<24}NAME")
    for kind, entries in summary.items():
        for entry in entries:
            print(f"{kind.rstrip('s'):<12}{entry['namespace'] or '':<24}{entry['name']}")
    return 0


def run_shadow(args: Namespace) -> int:
    """Get or create a shadow pod and print how to reach it."""
    from shadowlink.shadow.orchestrator import get_shadow_orchestrator

    orchestrator = get_shadow_orchestrator()
    settings = orchestrator.settings
    if args.namespace:
        settings.namespace = args.namespace
    if args.share:
        settings.shadow.share = True
    if args.image:
        settings.shadow.image = args.image

    pod_ip, pod_name, credential = asyncio.run(
        orchestrator.get_or_create_shadow(
            args.name,
            labels=_pairs(args.label),
            envs=_pairs(args.env),
        )
    )
    print(f"Pod IP:      {pod_ip}")
    print(f"Pod name:    {pod_name}")
    print(f"Private key: {credential.private_key_path}")
    print(f"SSH:         {credential.username}@{credential.remote_host}:{credential.port}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    command_handlers = {
        "resources": list_resources,
        "shadow": run_shadow,
    }

    handler = command_handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    _configure(args)
    try:
        return handler(args)
    except ShadowWorkflowError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except ApiException as e:
        print(f"Error: Kubernetes API error: {e.status} {e.reason}", file=sys.stderr)
        return 1
    except (ConfigException, OSError) as e:
        error = ensure_shadow_error(e, code="shadow_local_error", phase=args.command)
        print(
            f"Error: {error.message} ({error.details['exception_type']})", file=sys.stderr
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())

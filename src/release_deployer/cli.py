"""Command-line interface for release-deployer."""

from __future__ import annotations

import argparse
import logging
from typing import Optional

from .config import load_config, write_config_template
from .errors import DeployerError
from .utils.logging import get_logger
from .workflow import DeploymentWorkflow

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="release-deployer",
        description="Deploy timestamped releases of an application to a server over SSH.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to the JSON config file (default: config/deploy.json).",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable debug logging",
    )

    # 所有远程命令共享的本地模式选项
    target_parser = argparse.ArgumentParser(add_help=False)
    target_parser.add_argument(
        "--local", "-L", action="store_true",
        help="Operate on this machine instead of connecting over SSH",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser(
        "deploy", parents=[target_parser], help="Deploy a new release"
    )
    subparsers.add_parser(
        "releases", parents=[target_parser], help="List releases on the target"
    )
    subparsers.add_parser(
        "rollback", parents=[target_parser], help="Re-activate the previous release"
    )
    switch_parser = subparsers.add_parser(
        "switch", parents=[target_parser], help="Activate a specific release"
    )
    switch_parser.add_argument(
        "release_id", nargs="?", default=None,
        help="Release token (YYYYMMDDHHMMSS); prompts when omitted",
    )
    switch_parser.add_argument(
        "--strict", action="store_true",
        help="Refuse to switch to a release that does not exist",
    )
    subparsers.add_parser(
        "setup", help="Write a configuration template"
    )

    return parser


def handle_setup_command(args: argparse.Namespace) -> int:
    """Handle the setup subcommand."""
    written = write_config_template(args.config)
    if written is None:
        print(f"⚠️  Configuration file already exists: {args.config or 'config/deploy.json'}")
        return 0
    print(f"✅ Configuration template written to {written}")
    print("   Edit it, then run `release-deployer deploy`.")
    return 0


def handle_deploy_command(workflow: DeploymentWorkflow) -> int:
    result = workflow.deploy()
    if not result.success:
        print(f"❌ Deployment failed: {result.error}")
        return 1
    if result.warnings:
        print(f"⚠️  Release {result.token} deployed, some steps failed:")
        for record in result.warnings:
            print(f"   - {record.state.value}: {record.error}")
    else:
        print(f"✅ Release {result.token} deployed")
    return 0


def handle_releases_command(workflow: DeploymentWorkflow) -> int:
    listing = workflow.list_releases()
    if not listing.releases:
        print("📁 No releases found.")
        return 0
    for token in listing.releases:
        marker = "*" if token == listing.current else " "
        print(f"{marker} {token}")
    return 0


def handle_rollback_command(workflow: DeploymentWorkflow) -> int:
    token = workflow.rollback()
    if token is None:
        print("Nothing to roll back to.")
    else:
        print(f"✅ Rolled back to release {token}")
    return 0


def handle_switch_command(workflow: DeploymentWorkflow, args: argparse.Namespace) -> int:
    token = workflow.switch(args.release_id, strict=args.strict)
    if token is None:
        return 1
    print(f"✅ Switched to release {token}")
    return 0


def dispatch_command(args: argparse.Namespace) -> int:
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.command == "setup":
        return handle_setup_command(args)

    try:
        config = load_config(args.config)
        workflow = DeploymentWorkflow(config, local=getattr(args, "local", False))

        if args.command == "deploy":
            return handle_deploy_command(workflow)
        if args.command == "releases":
            return handle_releases_command(workflow)
        if args.command == "rollback":
            return handle_rollback_command(workflow)
        if args.command == "switch":
            return handle_switch_command(workflow, args)
    except DeployerError as exc:
        logger.error("%s", exc)
        return 1

    raise ValueError(f"Unknown command: {args.command}")


def run_cli(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return dispatch_command(args)

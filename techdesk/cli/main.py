"""
CLI entry point for the ``techdesk`` command.

A headless render driver: it loads configuration, builds the workspace from
the configured vendors, navigates to the requested view, ticks until every
fetch has landed and prints what a terminal UI would draw as JSON.

Usage:
    techdesk orgs
    techdesk sites [--org ACCOUNT_UID]
    techdesk site SITE_UID [--tab devices|alerts|variables|security|settings]
    techdesk device SITE_UID DEVICE_UID [--tab overview|alerts|security|activity]
    techdesk activity SITE_UID DEVICE_UID ACTIVITY_ID
    techdesk scan SITE_UID DEVICE_UID
    techdesk run-job SITE_UID DEVICE_UID COMPONENT_UID [--var NAME=VALUE ...]
    techdesk set-var SITE_UID NAME VALUE [--create [--masked]]
    techdesk update-site SITE_UID [--name N] [--description D] [--notes N] [--on-demand|--no-on-demand]
"""

from __future__ import annotations

import argparse
from dataclasses import fields
import json
import sys
from typing import Any, Dict, List, Optional, Tuple

from ..api.adapter import ActionKind
from ..api.entities import EntityKey
from ..core.config import ENV_FILE, load_config
from ..core.errors import ConfigError
from ..core.logging import configure_logging, get_logger
from ..workspace.navigation import (
    ActivityDetail,
    DeviceDetail,
    DeviceTab,
    NavigationView,
    SiteDetail,
    SiteList,
    SiteTab,
    site_key,
)
from ..workspace.routing import device_key, site_variables_key
from ..workspace.workspace import Workspace

logger = get_logger("techdesk.cli")

ActionRequest = Tuple[EntityKey, ActionKind, Optional[Dict[str, Any]]]


def name_value(text: str) -> Tuple[str, str]:
    """``NAME=VALUE`` argument of ``--var``."""
    name, sep, value = text.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {text!r}")
    return name.strip(), value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="techdesk",
        description="MSP technician workspace (headless driver)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--env", default=ENV_FILE, help=f".env file with vendor credentials (default: {ENV_FILE})")
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Seconds to wait for vendor responses (default: 30)",
    )
    parser.add_argument("--log-level", default=None, help="Override TECHDESK_LOG_LEVEL")

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("orgs", help="Managed-detection statistics per organization")

    sites = commands.add_parser("sites", help="List RMM sites")
    sites.add_argument("--org", default=None, help="Only sites of this RMM account")

    site = commands.add_parser("site", help="Show one site")
    site.add_argument("site_id")
    site.add_argument("--tab", choices=[t.value for t in SiteTab], default=SiteTab.DEVICES.value)

    device = commands.add_parser("device", help="Show one device")
    device.add_argument("site_id")
    device.add_argument("device_id")
    device.add_argument("--tab", choices=[t.value for t in DeviceTab], default=DeviceTab.OVERVIEW.value)

    activity = commands.add_parser("activity", help="Show one device activity and its job result")
    activity.add_argument("site_id")
    activity.add_argument("device_id")
    activity.add_argument("activity_id")

    scan = commands.add_parser("scan", help="Start an antivirus scan on a device")
    scan.add_argument("site_id")
    scan.add_argument("device_id")

    run_job = commands.add_parser("run-job", help="Run a component on a device as a quick job")
    run_job.add_argument("site_id")
    run_job.add_argument("device_id")
    run_job.add_argument("component_uid")
    run_job.add_argument("--var", dest="variables", type=name_value, action="append", default=[],
                         metavar="NAME=VALUE", help="Component variable (repeatable)")
    run_job.add_argument("--job-name", default="", help="Job name shown in the RMM")

    set_var = commands.add_parser("set-var", help="Create or update a site variable")
    set_var.add_argument("site_id")
    set_var.add_argument("name")
    set_var.add_argument("value")
    set_var.add_argument("--create", action="store_true", help="Create the variable instead of updating it")
    set_var.add_argument("--masked", action="store_true", help="Mask the value of a created variable")

    update_site = commands.add_parser("update-site", help="Change site settings")
    update_site.add_argument("site_id")
    update_site.add_argument("--name", default=None)
    update_site.add_argument("--description", default=None)
    update_site.add_argument("--notes", default=None)
    update_site.add_argument("--on-demand", dest="on_demand", action="store_true", default=None)
    update_site.add_argument("--no-on-demand", dest="on_demand", action="store_false")
    update_site.add_argument("--splashtop", dest="splashtop_auto_install", action="store_true", default=None)
    update_site.add_argument("--no-splashtop", dest="splashtop_auto_install", action="store_false")

    return parser


def views_for(args: argparse.Namespace) -> List[NavigationView]:
    """
    Navigation path (below the root) for the parsed command.
    """
    if args.command == "orgs":
        return []
    if args.command == "sites":
        return [SiteList(org_id=args.org)]
    if args.command in ("site", "set-var", "update-site"):
        if args.command == "site":
            tab = SiteTab(args.tab)
        else:
            tab = SiteTab.VARIABLES if args.command == "set-var" else SiteTab.SETTINGS
        return [SiteList(), SiteDetail(site_id=args.site_id, active_tab=tab)]

    path: List[NavigationView] = [SiteList(), SiteDetail(site_id=args.site_id)]
    if args.command == "device":
        tab = DeviceTab(args.tab)
    elif args.command == "scan":
        tab = DeviceTab.SECURITY
    elif args.command in ("run-job", "activity"):
        tab = DeviceTab.ACTIVITY
    else:
        raise ValueError(f"Unknown command {args.command!r}")
    path.append(DeviceDetail(device_id=args.device_id, site_id=args.site_id, active_tab=tab))
    if args.command == "activity":
        path.append(ActivityDetail(activity_id=args.activity_id, device_id=args.device_id, site_id=args.site_id))
    return path


def action_for(args: argparse.Namespace) -> Optional[ActionRequest]:
    """
    The action a command dispatches once its view is loaded, if any.
    """
    if args.command == "scan":
        return device_key(args.site_id, args.device_id), ActionKind.SCAN, None
    if args.command == "run-job":
        params = {
            "component_uid": args.component_uid,
            "variables": dict(args.variables),
            "job_name": args.job_name,
        }
        return device_key(args.site_id, args.device_id), ActionKind.RUN_JOB, params
    if args.command == "set-var":
        kind = ActionKind.CREATE_VARIABLE if args.create else ActionKind.UPDATE_VARIABLE
        params = {"name": args.name, "value": args.value}
        if args.create:
            params["masked"] = args.masked
        return site_variables_key(args.site_id), kind, params
    if args.command == "update-site":
        settings = {
            name: getattr(args, name)
            for name in ("name", "description", "notes", "on_demand", "splashtop_auto_install")
            if getattr(args, name) is not None
        }
        return site_key(args.site_id), ActionKind.UPDATE_SITE, settings
    return None


def view_to_dict(view: NavigationView) -> Dict[str, Any]:
    data: Dict[str, Any] = {"type": type(view).__name__}
    for f in fields(view):
        value = getattr(view, f.name)
        data[f.name] = getattr(value, "value", value)
    return data


def snapshot(workspace: Workspace) -> Dict[str, Any]:
    """
    Everything the current view would render.
    """
    keys = workspace.entities_for()
    entries = []
    for key, entry in zip(keys, workspace.cache_snapshot(keys)):
        item: Dict[str, Any] = {"key": str(key)}
        item.update(entry.to_dict() if entry is not None else {"state": "absent"})
        entries.append(item)
    return {
        "view": view_to_dict(workspace.current_view()),
        "breadcrumbs": [view_to_dict(v) for v in workspace.navigation.views()],
        "entries": entries,
        "pending_actions": [a.to_dict() for a in workspace.pending_actions()],
    }


def run_command(workspace: Workspace, args: argparse.Namespace) -> Dict[str, Any]:
    """
    Navigate, wait for data and dispatch the command's action, if any.
    """
    for view in views_for(args):
        workspace.push(view)
        workspace.run_until_idle(timeout=args.timeout)

    result: Dict[str, Any] = {"idle": workspace.run_until_idle(timeout=args.timeout)}

    request = action_for(args)
    if request is not None:
        target, kind, params = request
        action = workspace.dispatch(target, kind, params=params)
        result["idle"] = workspace.run_until_idle(timeout=args.timeout)
        # The action may already be pruned; keep the object we were handed.
        result["action"] = action.to_dict()

    result.update(snapshot(workspace))
    return result


def print_result(result: Dict[str, Any]) -> None:
    """Print the result as JSON."""
    print(json.dumps(result, indent=2, default=str))


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.env)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.log_level:
        config.logging.log_level = args.log_level
    configure_logging(config.logging)
    logger.info(f"techdesk {args.command} started")

    workspace = Workspace.from_config(config)
    try:
        result = run_command(workspace, args)
    finally:
        workspace.close()

    print_result(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())

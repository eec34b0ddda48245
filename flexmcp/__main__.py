import argparse
import json
import os
import sys

from dotenv import dotenv_values

from .core.errors import ConfigurationError
from .core.resolver import config_summary, resolve_config
from .core.settings import Settings
from .main import build_registry, main as serve_main, setup_logging
from .tools.registry import ToolFilterOptions


def _parse_header(raw: str) -> tuple[str, str]:
    if "=" not in raw:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {raw!r}")
    name, value = raw.split("=", 1)
    return name.strip().lower(), value


def read_env_file(path: str) -> dict[str, str]:
    """Load a .env file. Keys declared without a value are dropped."""
    if not os.path.isfile(path):
        raise ConfigurationError(f"Env file not found: {path}")
    return {key: value for key, value in dotenv_values(path).items() if value is not None}


def _cmd_resolve(args: argparse.Namespace, settings: Settings) -> int:
    env = read_env_file(args.env_file) if args.env_file else dict(os.environ)
    context = resolve_config(args.header, env, settings.fallback_config())
    registry = build_registry(settings)
    tool_filter = registry.filter_tools(
        context.resolved,
        ToolFilterOptions(include_auth_required=settings.get("tools.include_auth_required", True)),
    )

    if args.json:
        print(json.dumps(
            {"context": context.to_dict(redact=True), "tools": tool_filter.to_dict()},
            indent=2,
            default=str,
        ))
        return 0

    print(config_summary(context))
    print()
    print(f"Visible tools ({tool_filter.summary.included}/{tool_filter.summary.total}):")
    for name in tool_filter.tool_names:
        print(f"  {name}")
    for excluded in tool_filter.excluded:
        print(f"  - {excluded.tool_name}: {excluded.reason}")
    return 0


def _cmd_tools(args: argparse.Namespace, settings: Settings) -> int:
    registry = build_registry(settings)
    for tool in registry.all_tools():
        meta = tool.metadata
        tags = ", ".join(meta.tags) or "-"
        auth = " (requires auth)" if meta.requires_auth else ""
        print(f"{tool.name:<14} [{meta.category or '-'}] {tool.description}{auth}  tags: {tags}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(prog="flexmcp", description="Flexible tool server")
    parser.add_argument("--config", default=None, help="Path to the settings YAML file")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the HTTP server")

    resolve = sub.add_parser("resolve", help="Show the configuration a request would resolve to")
    resolve.add_argument(
        "--header",
        action="append",
        type=_parse_header,
        default=[],
        metavar="NAME=VALUE",
        help="Request header, repeatable (e.g. --header 'to-use=[\"add\"]')",
    )
    resolve.add_argument("--env-file", default=None, help=".env file used instead of the process environment")
    resolve.add_argument("--json", action="store_true", help="Print JSON instead of a summary")

    sub.add_parser("tools", help="List registered tools")

    args = parser.parse_args()

    if args.command == "serve":
        try:
            serve_main(args.config)
        except ConfigurationError as exc:
            print(f"error: {exc}", file=sys.stderr)
            sys.exit(1)
        return

    try:
        settings = Settings(args.config)
    except ConfigurationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
    # Keep command output clean: only warnings reach the console.
    setup_logging("WARNING")

    handlers = {"resolve": _cmd_resolve, "tools": _cmd_tools}
    try:
        code = handlers[args.command](args, settings)
    except ConfigurationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()

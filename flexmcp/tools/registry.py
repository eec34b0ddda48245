# Purpose: ToolDefinition, enablement conditions, ToolRegistry and the
#          per-request tool filter with its memo.
# Relationships: tools/calculator.py, tools/health.py and tools/api.py build
#               ToolDefinitions; main.py registers them; adapters/network.py
#               calls filter_tools() with each request's resolved config and
#               dispatches through ToolDefinition.execute().
#
# The registry is an ordinary object owned by whoever builds the server.
# It is populated once at startup and read concurrently afterwards. Every
# registration change clears the filter memo, because a memoised result is
# only valid for the registry contents it was computed from.

import inspect
import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, ClassVar, Union

from pydantic import BaseModel, ValidationError

from ..core.errors import FlexMCPError, tool_error_response
from ..core.resolver import TOOL_LIST_KEY

logger = logging.getLogger("registry")

ToolHandler = Callable[[dict, dict], Union[dict, Awaitable[dict]]]

REASON_DISABLED = "Tool is disabled by default"
REASON_NOT_INCLUDED = "Not in include list"
REASON_EXCLUDED = "In exclude list"
REASON_CATEGORY = "Category not in allowed list"
REASON_TAGS = "Missing required tags"
REASON_AUTH = "Tool requires authentication but auth tools are excluded"
REASON_NOT_REQUESTED = "not in requested tools list"


def model_to_json_schema(model: type[BaseModel]) -> dict:
    """
    Generate a JSON Schema dict from a Pydantic BaseModel class.

    The advertised schema and the runtime validation are both derived from
    the same params model, so they cannot drift apart.
    """
    return model.model_json_schema()


@dataclass
class ToolMetadata:
    category: str | None = None
    tags: list[str] = field(default_factory=list)
    version: str | None = None
    author: str | None = None
    requires_auth: bool = False
    cacheable: bool = False
    estimated_duration_ms: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ToolDefinition:
    name: str
    description: str
    params_model: type[BaseModel] = field(repr=False)
    handler: ToolHandler = field(repr=False)
    metadata: ToolMetadata = field(default_factory=ToolMetadata)
    parameters_schema: dict = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.parameters_schema = model_to_json_schema(self.params_model)

    async def execute(self, parameters: dict, config: dict) -> dict:
        # Parameters are always validated before the handler runs. Handlers
        # receive only the fields the caller set plus model defaults, and the
        # resolved configuration of the current request.
        try:
            validated = self.params_model.model_validate(parameters)
        except ValidationError as exc:
            return {"error": f"Parameter validation failed: {exc}"}

        try:
            result = self.handler(validated.model_dump(), config)
            if inspect.isawaitable(result):
                result = await result
        except FlexMCPError as exc:
            return tool_error_response(exc, self.name)
        except Exception as exc:
            logger.exception("Tool %s raised an unexpected error", self.name)
            return tool_error_response(exc, self.name)
        return result


# ---------------------------------------------------------------------------
# Enablement conditions
# ---------------------------------------------------------------------------


def _safe_call(kind: str, predicate: Callable[[Any], Any], argument: Any) -> bool:
    try:
        return bool(predicate(argument))
    except Exception as exc:
        logger.warning("%s condition raised %r; treating as not met", kind, exc)
        return False


@dataclass(frozen=True)
class ConfigEquals:
    """Met when resolved[field] == value."""

    field: str
    value: Any
    kind: ClassVar[str] = "config"

    def evaluate(self, config: dict) -> bool:
        if not self.field:
            return False
        return config.get(self.field) == self.value


@dataclass(frozen=True)
class ConfigPredicate:
    """Met when predicate(resolved[field]) is truthy. A missing field passes None."""

    field: str
    predicate: Callable[[Any], bool] = field(repr=False)
    kind: ClassVar[str] = "config"

    def evaluate(self, config: dict) -> bool:
        if not self.field or self.predicate is None:
            return False
        return _safe_call(self.kind, self.predicate, config.get(self.field))


@dataclass(frozen=True)
class CustomCondition:
    predicate: Callable[[dict], bool] = field(repr=False)
    kind: ClassVar[str] = "custom"

    def evaluate(self, config: dict) -> bool:
        if self.predicate is None:
            return False
        return _safe_call(self.kind, self.predicate, config)


@dataclass(frozen=True)
class EnvironmentCondition:
    """Hook for deployment-environment checks. Always met for now."""

    kind: ClassVar[str] = "environment"

    def evaluate(self, config: dict) -> bool:
        return True


ToolCondition = Union[ConfigEquals, ConfigPredicate, CustomCondition, EnvironmentCondition]


@dataclass
class ToolRegistration:
    tool: ToolDefinition
    enabled_by_default: bool = True
    conditions: tuple[ToolCondition, ...] = ()


# ---------------------------------------------------------------------------
# Filtering types
# ---------------------------------------------------------------------------


@dataclass
class ToolFilterOptions:
    """
    Optional narrowing applied on top of registry eligibility.

    None means "not specified" for every field. include_auth_required=False
    hides tools whose metadata sets requires_auth. config, when given,
    replaces the resolved config for condition evaluation only.
    """

    include: list[str] | None = None
    exclude: list[str] | None = None
    categories: list[str] | None = None
    required_tags: list[str] | None = None
    include_auth_required: bool | None = None
    config: dict | None = None


@dataclass(frozen=True)
class ExcludedTool:
    tool_name: str
    reason: str


@dataclass(frozen=True)
class FilterSummary:
    total: int
    included: int
    excluded: int


@dataclass
class ToolFilterResult:
    tools: list[ToolDefinition]
    excluded: list[ExcludedTool]
    summary: FilterSummary

    @property
    def tool_names(self) -> list[str]:
        return [t.name for t in self.tools]

    def to_dict(self) -> dict:
        return {
            "tools": self.tool_names,
            "excluded": [asdict(e) for e in self.excluded],
            "summary": asdict(self.summary),
        }


def _optional_key(values: list[str] | None) -> tuple[str, ...] | None:
    return None if values is None else tuple(values)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToolRegistry:
    """Catalogue of tools, in registration order, plus the filter memo."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolRegistration] = {}
        self._filtered_cache: dict[tuple, list[str]] = {}
        self._lock = threading.RLock()
        self.cache_hits = 0

    def register(
        self,
        tool: ToolDefinition,
        enabled_by_default: bool = True,
        conditions: list[ToolCondition] | tuple[ToolCondition, ...] = (),
    ) -> None:
        """Insert or replace the registration for tool.name and clear the memo."""
        registration = ToolRegistration(
            tool=tool,
            enabled_by_default=enabled_by_default,
            conditions=tuple(conditions),
        )
        with self._lock:
            # Re-registering keeps the original position, like a dict update.
            self._tools[tool.name] = registration
            self._filtered_cache.clear()
        logger.info("Registered tool: %s", tool.name)

    def register_many(self, tools: list[ToolDefinition]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> ToolDefinition | None:
        registration = self._tools.get(name)
        return registration.tool if registration else None

    def registration(self, name: str) -> ToolRegistration | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def all_tools(self) -> list[ToolDefinition]:
        return [r.tool for r in self._tools.values()]

    def clear(self) -> None:
        with self._lock:
            self._tools.clear()
            self._filtered_cache.clear()
            self.cache_hits = 0

    def stats(self) -> dict:
        return {
            "total_tools": len(self._tools),
            "cache_entries": len(self._filtered_cache),
            "cache_hits": self.cache_hits,
            "tools": list(self._tools),
        }

    def schema_for_tools(self, tools: list[ToolDefinition] | None = None) -> list[dict]:
        """Return tool descriptions suitable for advertising to a caller."""
        if tools is None:
            tools = self.all_tools()
        return [
            {
                "name": t.name,
                "description": t.description,
                "parameters": t.parameters_schema,
                "metadata": t.metadata.to_dict(),
            }
            for t in tools
        ]

    # -------------------------------------------------------------------------
    # Filtering
    # -------------------------------------------------------------------------

    def filter_tools(
        self,
        resolved: dict,
        options: ToolFilterOptions | None = None,
    ) -> ToolFilterResult:
        """
        Compute the tools visible for one resolved configuration.

        Registry eligibility is evaluated first (enablement, include/exclude,
        categories, tags, auth, conditions). Survivors are then narrowed to
        resolved["availableTools"] when that list is non-empty; an empty list
        means no narrowing at all.

        Results are memoised per cache key. A memo hit returns an empty
        exclusion list: the per-tool reasons are only available on a cold
        computation.
        """
        options = options or ToolFilterOptions()
        requested: list[str] = resolved.get(TOOL_LIST_KEY) or []
        condition_config = options.config if options.config is not None else resolved

        with self._lock:
            cache_key = self._cache_key(requested, options, condition_config)
            cached = self._filtered_cache.get(cache_key)
            if cached is not None:
                self.cache_hits += 1
                logger.debug("Tool filter cache hit: %s", cached)
                return self._result_from_cache(cached)

            registrations = list(self._tools.values())
            included: list[ToolDefinition] = []
            excluded: list[ExcludedTool] = []

            for registration in registrations:
                reason = self._exclusion_reason(registration, options, condition_config)
                if reason is None:
                    included.append(registration.tool)
                else:
                    excluded.append(ExcludedTool(registration.tool.name, reason))

            final = included
            if requested:
                wanted = set(requested)
                final = [t for t in included if t.name in wanted]
                excluded.extend(
                    ExcludedTool(t.name, REASON_NOT_REQUESTED)
                    for t in included
                    if t.name not in wanted
                )

            self._filtered_cache[cache_key] = [t.name for t in final]

        return ToolFilterResult(
            tools=final,
            excluded=excluded,
            summary=FilterSummary(
                total=len(registrations),
                included=len(final),
                excluded=len(excluded),
            ),
        )

    def _cache_key(
        self,
        requested: list[str],
        options: ToolFilterOptions,
        condition_config: dict,
    ) -> tuple:
        # Structured key instead of a delimiter-joined string, so names that
        # contain the delimiter cannot collide. Field conditions add only the
        # fields they read; a custom condition can read anything, so it adds
        # the whole config.
        conditions = [c for r in self._tools.values() for c in r.conditions]
        config_fingerprint = None
        if any(isinstance(c, CustomCondition) for c in conditions):
            config_fingerprint = json.dumps(condition_config, sort_keys=True, default=repr)
        elif conditions:
            fields = sorted({
                c.field for c in conditions if isinstance(c, (ConfigEquals, ConfigPredicate))
            })
            config_fingerprint = json.dumps(
                {name: condition_config.get(name) for name in fields},
                sort_keys=True,
                default=repr,
            )
        return (
            tuple(requested),
            _optional_key(options.include),
            _optional_key(options.exclude),
            _optional_key(options.categories),
            _optional_key(options.required_tags),
            options.include_auth_required,
            config_fingerprint,
        )

    def _result_from_cache(self, names: list[str]) -> ToolFilterResult:
        tools = [self._tools[name].tool for name in names]
        total = len(self._tools)
        return ToolFilterResult(
            tools=tools,
            excluded=[],
            summary=FilterSummary(total=total, included=len(tools), excluded=total - len(tools)),
        )

    @staticmethod
    def _exclusion_reason(
        registration: ToolRegistration,
        options: ToolFilterOptions,
        config: dict,
    ) -> str | None:
        """Return why the tool is excluded, or None when it stays visible."""
        tool = registration.tool
        metadata = tool.metadata

        if not registration.enabled_by_default:
            return REASON_DISABLED

        if options.include is not None and tool.name not in options.include:
            return REASON_NOT_INCLUDED

        if options.exclude is not None and tool.name in options.exclude:
            return REASON_EXCLUDED

        if options.categories is not None:
            if not metadata.category or metadata.category not in options.categories:
                return REASON_CATEGORY

        if options.required_tags:
            if not set(options.required_tags).issubset(metadata.tags):
                return REASON_TAGS

        if metadata.requires_auth and options.include_auth_required is False:
            return REASON_AUTH

        for condition in registration.conditions:
            if not condition.evaluate(config):
                return f"Condition not met: {condition.kind}"

        return None

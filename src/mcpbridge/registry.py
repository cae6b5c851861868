# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Registry of tools, resources and call templates recovered from source.

A :class:`Registry` is an immutable snapshot: it is built once per source text
by :func:`mcpbridge.introspection.parse` and then only read, so concurrent tool
calls can share it freely.  Every tool in a registry has a call template, either
recovered from the source (``origin="parsed"``) or synthesized from the tool's
name by :func:`infer_call_template` (``origin="inferred"``).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
import re
from types import MappingProxyType
from typing import Any, Final, Literal


HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
TemplateOrigin = Literal["parsed", "inferred"]
SourceLanguage = Literal["python", "typescript"]

HTTP_METHODS: Final[frozenset[str]] = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})
BODY_METHODS: Final[frozenset[str]] = frozenset({"POST", "PUT", "PATCH"})

DEFAULT_SERVER_NAME: Final[str] = "unknown-server"
DEFAULT_API_BASE_URL: Final[str] = "https://api.example.com"
DEFAULT_MIME_TYPE: Final[str] = "application/json"


def empty_object_schema() -> dict[str, Any]:
    return {"type": "object", "properties": {}}


def _freeze(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """A tool as advertised by ``tools/list``."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=empty_object_schema)

    def to_payload(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "inputSchema": self.input_schema}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ToolDefinition | None:
        """Build a definition from a wire payload, tolerating alias spellings.

        Returns ``None`` when no usable name is present.
        """
        name = payload.get("name") or payload.get("toolName")
        if not isinstance(name, str) or not name:
            return None
        schema = payload.get("inputSchema") or payload.get("input_schema") or payload.get("schema")
        return cls(
            name=name,
            description=str(payload.get("description") or payload.get("desc") or ""),
            input_schema=dict(schema) if isinstance(schema, Mapping) else empty_object_schema(),
        )


@dataclass(frozen=True, slots=True)
class ResourceDefinition:
    """A resource as advertised by ``resources/list``."""

    uri: str
    name: str = ""
    description: str = ""
    mime_type: str = DEFAULT_MIME_TYPE

    def to_payload(self) -> dict[str, Any]:
        return {"uri": self.uri, "name": self.name, "description": self.description, "mimeType": self.mime_type}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ResourceDefinition | None:
        uri = payload.get("uri") or payload.get("url")
        if not isinstance(uri, str) or not uri:
            return None
        mime_type = payload.get("mimeType") or payload.get("mime_type") or payload.get("contentType")
        return cls(
            uri=uri,
            name=str(payload.get("name") or payload.get("title") or ""),
            description=str(payload.get("description") or payload.get("desc") or ""),
            mime_type=str(mime_type or DEFAULT_MIME_TYPE),
        )


@dataclass(frozen=True, slots=True)
class PathParam:
    """Binds the ``{placeholder}`` in a path to a tool argument."""

    placeholder: str
    argument: str


@dataclass(frozen=True, slots=True)
class CallTemplate:
    """How one tool call turns into one HTTP request."""

    method: HttpMethod
    path: str
    path_params: tuple[PathParam, ...] = ()
    has_query_params: bool = False
    has_body: bool = False
    origin: TemplateOrigin = "parsed"

    @property
    def path_arguments(self) -> frozenset[str]:
        return frozenset(param.argument for param in self.path_params)

    @property
    def inferred(self) -> bool:
        return self.origin == "inferred"


# ---------------------------------------------------------------------------
# Naming-convention inference
# ---------------------------------------------------------------------------

_METHOD_VERBS: Final[tuple[tuple[HttpMethod, frozenset[str]], ...]] = (
    ("POST", frozenset({"create", "add", "new", "insert", "submit"})),
    ("PUT", frozenset({"update", "replace", "edit", "set"})),
    ("PATCH", frozenset({"patch", "modify"})),
    ("DELETE", frozenset({"delete", "remove", "destroy"})),
)
_FILLER_WORDS: Final[frozenset[str]] = frozenset(
    {"get", "list", "fetch", "read", "find", "search", "retrieve", "show", "all", "by", "id", "for", "of", "one", "single"}
)
_VERB_WORDS: Final[frozenset[str]] = frozenset().union(*(verbs for _, verbs in _METHOD_VERBS))
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _name_tokens(name: str) -> list[str]:
    spaced = _CAMEL_BOUNDARY.sub("_", name)
    return [token for token in re.split(r"[^A-Za-z0-9]+", spaced.lower()) if token]


def _pluralize(noun: str) -> str:
    if noun.endswith("s"):
        return noun
    if noun.endswith("y") and len(noun) > 1 and noun[-2] not in "aeiou":
        return noun[:-1] + "ies"
    return noun + "s"


def infer_method(tool_name: str) -> HttpMethod:
    tokens = set(_name_tokens(tool_name))
    for method, verbs in _METHOD_VERBS:
        if tokens & verbs:
            return method
    return "GET"


def infer_call_template(tool_name: str) -> CallTemplate:
    """Synthesize a template from verb-like and resource-like parts of a name.

    ``get_post_by_id`` becomes ``GET /posts/{id}``, ``create_user`` becomes
    ``POST /users`` and ``get_user_posts`` becomes ``GET /users/{id}/posts``.
    """
    tokens = _name_tokens(tool_name)
    method = infer_method(tool_name)
    nouns = [token for token in tokens if token not in _FILLER_WORDS and token not in _VERB_WORDS]
    by_id = "id" in tokens

    path_params: tuple[PathParam, ...] = ()
    if not nouns:
        path = "/"
    else:
        primary = _pluralize(nouns[0])
        if len(nouns) > 1:
            path = f"/{primary}/{{id}}/{_pluralize(nouns[1])}"
            path_params = (PathParam("id", "id"),)
        elif by_id or method in {"PUT", "PATCH", "DELETE"}:
            path = f"/{primary}/{{id}}"
            path_params = (PathParam("id", "id"),)
        else:
            path = f"/{primary}"

    return CallTemplate(
        method=method,
        path=path,
        path_params=path_params,
        has_query_params=method == "GET",
        has_body=method in BODY_METHODS,
        origin="inferred",
    )


def infer_resource_path(uri: str) -> str:
    """Map a resource URI to its canonical read path (``posts://all`` -> ``/posts``)."""
    scheme, separator, _ = uri.partition("://")
    scheme = scheme.strip().strip("/")
    if not separator or not scheme:
        return "/"
    return f"/{scheme}"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Registry:
    """Immutable snapshot of everything recovered from one source text."""

    server_name: str = DEFAULT_SERVER_NAME
    api_base_url: str = DEFAULT_API_BASE_URL
    language: SourceLanguage = "python"
    tools: Mapping[str, ToolDefinition] = field(default_factory=dict)
    resources: Mapping[str, ResourceDefinition] = field(default_factory=dict)
    templates: Mapping[str, CallTemplate] = field(default_factory=dict)
    resource_paths: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        templates = dict(self.templates)
        for name in self.tools:
            if name not in templates:
                templates[name] = infer_call_template(name)
        object.__setattr__(self, "tools", _freeze(self.tools))
        object.__setattr__(self, "resources", _freeze(self.resources))
        object.__setattr__(self, "templates", _freeze(templates))
        object.__setattr__(self, "resource_paths", _freeze(self.resource_paths))

    @classmethod
    def build(
        cls,
        *,
        server_name: str = DEFAULT_SERVER_NAME,
        api_base_url: str = DEFAULT_API_BASE_URL,
        language: SourceLanguage = "python",
        tools: Iterable[ToolDefinition] = (),
        resources: Iterable[ResourceDefinition] = (),
        templates: Mapping[str, CallTemplate] | None = None,
        resource_paths: Mapping[str, str] | None = None,
    ) -> Registry:
        """Key definitions by name/uri; later duplicates replace earlier ones."""
        return cls(
            server_name=server_name,
            api_base_url=api_base_url,
            language=language,
            tools={tool.name: tool for tool in tools},
            resources={resource.uri: resource for resource in resources},
            templates=dict(templates or {}),
            resource_paths=dict(resource_paths or {}),
        )

    def template_for(self, tool_name: str) -> CallTemplate | None:
        if tool_name not in self.tools:
            return None
        return self.templates.get(tool_name)

    def read_path_for(self, uri: str) -> str:
        return self.resource_paths.get(uri) or infer_resource_path(uri)

    def with_api_base_url(self, api_base_url: str) -> Registry:
        return replace(self, api_base_url=api_base_url)

    def summary(self) -> dict[str, Any]:
        return {
            "server": self.server_name,
            "api_base_url": self.api_base_url,
            "language": self.language,
            "tools": len(self.tools),
            "resources": len(self.resources),
            "inferred_templates": sorted(name for name, template in self.templates.items() if template.inferred),
        }


__all__ = [
    "BODY_METHODS",
    "CallTemplate",
    "DEFAULT_API_BASE_URL",
    "DEFAULT_MIME_TYPE",
    "DEFAULT_SERVER_NAME",
    "HTTP_METHODS",
    "HttpMethod",
    "PathParam",
    "Registry",
    "ResourceDefinition",
    "SourceLanguage",
    "ToolDefinition",
    "empty_object_schema",
    "infer_call_template",
    "infer_method",
    "infer_resource_path",
]

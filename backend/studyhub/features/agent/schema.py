"""
Agent feature: translate tool parameter models into function declarations.

Gemini's function-calling API wants `type` tags as its SchemaType enum
(upper-case strings), an OBJECT root with `properties` and `required`, and no
JSON-schema references. Pydantic's `model_json_schema()` gives us lower-case
types, `$defs`/`$ref` for nested models and `anyOf [X, null]` for optionals,
so each declaration goes through:

  1. `_resolve_schema`       inline `$ref`, drop titles, collapse nullables
  2. `normalize_schema_types` upper-case every `type` tag (pure transform)
"""

import copy
from typing import TYPE_CHECKING, Any, Iterable

from studyhub.core.exceptions import SchemaTranslationError

if TYPE_CHECKING:
    from studyhub.features.agent.registry import ToolDescriptor


# Keys whose values are data, not sub-schemas.
_LITERAL_KEYS = {"default", "enum", "const", "examples"}
_DEFS_KEYS = {"$defs", "definitions"}


def normalize_schema_types(node: Any) -> Any:
    """Return a copy of `node` with every `type` tag upper-cased.

    Works on any mix of dicts and lists; the input is never mutated. Literal
    values (`default`, `enum`, ...) are copied untouched.
    """
    if isinstance(node, dict):
        result = {}
        for key, value in node.items():
            if key == "type" and isinstance(value, str):
                result[key] = value.upper()
            elif key == "type" and isinstance(value, list) and all(isinstance(v, str) for v in value):
                result[key] = [v.upper() for v in value]
            elif key in _LITERAL_KEYS:
                result[key] = copy.deepcopy(value)
            elif key == "properties" and isinstance(value, dict):
                result[key] = {prop: normalize_schema_types(sub) for prop, sub in value.items()}
            else:
                result[key] = normalize_schema_types(value)
        return result
    if isinstance(node, list):
        return [normalize_schema_types(item) for item in node]
    return node


def _collapse_nullable(node: dict) -> dict:
    """`anyOf: [X, {"type": "null"}]` -> X with `nullable: true`."""
    variants = node.get("anyOf")
    if not isinstance(variants, list) or len(variants) != 2:
        return node
    non_null = [v for v in variants if not (isinstance(v, dict) and v.get("type") == "null")]
    if len(non_null) != 1 or not isinstance(non_null[0], dict):
        return node
    collapsed = {k: v for k, v in node.items() if k != "anyOf"}
    collapsed.update(non_null[0])
    collapsed["nullable"] = True
    return collapsed


def _resolve_schema(node: Any, defs: dict, tool_name: str, seen: tuple[str, ...] = ()) -> Any:
    if isinstance(node, list):
        return [_resolve_schema(item, defs, tool_name, seen) for item in node]
    if not isinstance(node, dict):
        return node

    if "$ref" in node:
        ref = node["$ref"]
        def_name = ref.rsplit("/", 1)[-1] if isinstance(ref, str) else None
        if def_name is None or def_name not in defs:
            raise SchemaTranslationError(tool_name, f"unresolvable reference {ref!r}")
        if def_name in seen:
            raise SchemaTranslationError(tool_name, f"self-referential model {def_name!r}")
        merged = dict(defs[def_name])
        merged.update({k: v for k, v in node.items() if k != "$ref"})
        return _resolve_schema(merged, defs, tool_name, seen + (def_name,))

    node = _collapse_nullable(node)
    result = {}
    for key, value in node.items():
        if key in _DEFS_KEYS:
            continue
        if key == "title" and isinstance(value, str):
            continue
        if key in _LITERAL_KEYS:
            result[key] = copy.deepcopy(value)
        elif key == "properties" and isinstance(value, dict):
            # Keys here are parameter names, never schema keywords.
            result[key] = {
                prop: _resolve_schema(sub, defs, tool_name, seen)
                for prop, sub in value.items()
            }
        else:
            result[key] = _resolve_schema(value, defs, tool_name, seen)
    return result


def build_parameters_schema(
    tool_name: str,
    json_schema: dict,
    normalize_types: bool = True,
) -> dict:
    """Build the OBJECT-rooted parameter block for one tool."""
    if not isinstance(json_schema, dict):
        raise SchemaTranslationError(tool_name, "parameter schema is not a mapping")

    root_type = json_schema.get("type", "object")
    if root_type != "object":
        raise SchemaTranslationError(tool_name, f"parameter root must be an object, got {root_type!r}")

    defs = {}
    for key in _DEFS_KEYS:
        defs.update(json_schema.get(key) or {})

    properties = _resolve_schema(json_schema.get("properties") or {}, defs, tool_name)
    required = list(json_schema.get("required") or [])

    parameters = {
        "type": "object",
        "properties": properties,
        "required": required,
    }
    return normalize_schema_types(parameters) if normalize_types else parameters


def to_function_declaration(descriptor: "ToolDescriptor", normalize_types: bool = True) -> dict:
    """Translate a single tool descriptor into a function declaration dict."""
    try:
        json_schema = descriptor.parameters.model_json_schema()
    except Exception as e:
        raise SchemaTranslationError(descriptor.name, str(e)) from e

    return {
        "name": descriptor.name,
        "description": descriptor.description,
        "parameters": build_parameters_schema(descriptor.name, json_schema, normalize_types),
    }


def build_declarations(
    descriptors: Iterable["ToolDescriptor"],
    normalize_types: bool = True,
) -> list[dict]:
    """One declaration per descriptor, in the order given.

    Raises:
        SchemaTranslationError: on the first schema that cannot be translated.
    """
    return [to_function_declaration(d, normalize_types) for d in descriptors]

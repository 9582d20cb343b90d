"""Shape validation for template and snippet request bodies.

Each :class:`ValidationSchema` maps to an immutable table of :class:`FieldRule`
entries. Rules are walked field by field; a missing optional field is skipped,
a present one is checked against the same constraints as on create.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

from .models import DocumentKind, SnippetParameter
from .validation import ValidationIssue, ValidationResult


class UnknownSchemaError(ValueError):
    """Raised for a schema name that has no rule table."""

    def __init__(self, schema_name: Any) -> None:
        super().__init__(f"Unknown validation schema: {schema_name}")
        self.schema_name = schema_name


class ValidationSchema(str, Enum):
    CREATE_TEMPLATE = "createTemplate"
    UPDATE_TEMPLATE = "updateTemplate"
    CREATE_SNIPPET = "createSnippet"
    UPDATE_SNIPPET = "updateSnippet"
    PREVIEW_TEMPLATE = "previewTemplate"
    PREVIEW_SNIPPET = "previewSnippet"
    EXPORT_TEMPLATES = "exportTemplates"
    IMPORT_TEMPLATES = "importTemplates"

    @property
    def kind(self) -> Optional[DocumentKind]:
        """Kind of content the body carries, ``None`` for preview bodies."""
        if self in (ValidationSchema.CREATE_TEMPLATE, ValidationSchema.UPDATE_TEMPLATE):
            return DocumentKind.TEMPLATE
        if self in (ValidationSchema.CREATE_SNIPPET, ValidationSchema.UPDATE_SNIPPET):
            return DocumentKind.SNIPPET
        return None


@dataclass(frozen=True, slots=True)
class FieldRule:
    type: str
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[re.Pattern[str]] = None
    enum: Optional[tuple[str, ...]] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    items: Optional["FieldRule"] = None
    properties: Optional[Mapping[str, "FieldRule"]] = None
    message: Optional[str] = None


TEMPLATE_NAME_PATTERN = re.compile(r"[a-zA-Z0-9\s\-_()]+")
SNIPPET_NAME_PATTERN = re.compile(r"[a-zA-Z0-9\-_]+")
TAG_PATTERN = re.compile(r"[a-zA-Z0-9\-_]+")
PARAMETER_NAME_PATTERN = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

EXPORT_FORMATS = ("zip", "json")
CONFLICT_RESOLUTIONS = ("skip", "overwrite", "rename")

_TEMPLATE_NAME_MESSAGE = (
    "Template name must be 1-100 characters and contain only letters, numbers, spaces, "
    "hyphens, underscores, and parentheses"
)
_SNIPPET_NAME_MESSAGE = (
    "Snippet name must be 1-100 characters and contain only letters, numbers, hyphens, and underscores"
)

_DESCRIPTION = FieldRule(type="string", max_length=500, message="Description must be less than 500 characters")
_CATEGORY = FieldRule(type="string", max_length=50, message="Category must be less than 50 characters")
_TAGS = FieldRule(
    type="array",
    max_items=10,
    items=FieldRule(
        type="string",
        min_length=1,
        max_length=30,
        pattern=TAG_PATTERN,
        message="Each tag must be 1-30 characters and contain only letters, numbers, hyphens, and underscores",
    ),
    message="Maximum 10 tags allowed",
)
_IS_VISUAL_MODE = FieldRule(type="boolean", message="isVisualMode must be a boolean")

_PARAMETER = FieldRule(
    type="object",
    properties=MappingProxyType(
        {
            "name": FieldRule(
                type="string",
                required=True,
                min_length=1,
                max_length=50,
                pattern=PARAMETER_NAME_PATTERN,
                message=(
                    "Parameter name must start with a letter or underscore and contain only letters, "
                    "numbers, and underscores"
                ),
            ),
            "type": FieldRule(
                type="string",
                required=True,
                enum=("string", "number", "boolean"),
                message="Parameter type must be string, number, or boolean",
            ),
            "required": FieldRule(type="boolean", message="Required must be a boolean"),
            "description": FieldRule(
                type="string", max_length=200, message="Parameter description must be less than 200 characters"
            ),
        }
    ),
)
_PARAMETERS = FieldRule(type="array", max_items=10, items=_PARAMETER, message="Maximum 10 parameters allowed")


def _template_fields(*, create: bool) -> Mapping[str, FieldRule]:
    return MappingProxyType(
        {
            "name": FieldRule(
                type="string",
                required=create,
                min_length=1,
                max_length=100,
                pattern=TEMPLATE_NAME_PATTERN,
                message=_TEMPLATE_NAME_MESSAGE,
            ),
            "description": _DESCRIPTION,
            "content": FieldRule(
                type="string",
                required=create,
                min_length=1,
                max_length=1_000_000,
                message=(
                    "Template content is required and must be less than 1MB"
                    if create
                    else "Template content must be less than 1MB"
                ),
            ),
            "category": _CATEGORY,
            "tags": _TAGS,
            "isVisualMode": _IS_VISUAL_MODE,
        }
    )


def _snippet_fields(*, create: bool) -> Mapping[str, FieldRule]:
    return MappingProxyType(
        {
            "name": FieldRule(
                type="string",
                required=create,
                min_length=1,
                max_length=100,
                pattern=SNIPPET_NAME_PATTERN,
                message=_SNIPPET_NAME_MESSAGE,
            ),
            "description": _DESCRIPTION,
            "content": FieldRule(
                type="string",
                required=create,
                min_length=1,
                max_length=100_000,
                message=(
                    "Snippet content is required and must be less than 100KB"
                    if create
                    else "Snippet content must be less than 100KB"
                ),
            ),
            "parameters": _PARAMETERS,
        }
    )


SCHEMAS: Mapping[ValidationSchema, Mapping[str, FieldRule]] = MappingProxyType(
    {
        ValidationSchema.CREATE_TEMPLATE: _template_fields(create=True),
        ValidationSchema.UPDATE_TEMPLATE: _template_fields(create=False),
        ValidationSchema.CREATE_SNIPPET: _snippet_fields(create=True),
        ValidationSchema.UPDATE_SNIPPET: _snippet_fields(create=False),
        ValidationSchema.PREVIEW_TEMPLATE: MappingProxyType(
            {
                "testData": FieldRule(type="object", message="Test data must be an object"),
                "sendTestEmail": FieldRule(type="boolean", message="sendTestEmail must be a boolean"),
                "testEmailAddress": FieldRule(
                    type="string", pattern=EMAIL_PATTERN, message="Test email address must be a valid email"
                ),
            }
        ),
        ValidationSchema.PREVIEW_SNIPPET: MappingProxyType(
            {"parameters": FieldRule(type="object", message="Parameters must be an object")}
        ),
        ValidationSchema.EXPORT_TEMPLATES: MappingProxyType(
            {
                "templateIds": FieldRule(
                    type="array",
                    required=True,
                    min_items=1,
                    max_items=50,
                    items=FieldRule(type="string", min_length=1, message="Template ids must be strings"),
                    message="templateIds must list 1-50 template ids",
                ),
                "includeSnippets": FieldRule(type="boolean", message="includeSnippets must be a boolean"),
                "format": FieldRule(type="string", enum=EXPORT_FORMATS, message="Format must be zip or json"),
            }
        ),
        ValidationSchema.IMPORT_TEMPLATES: MappingProxyType(
            {
                "format": FieldRule(type="string", enum=EXPORT_FORMATS, message="Format must be zip or json"),
                "conflictResolution": FieldRule(
                    type="string",
                    enum=CONFLICT_RESOLUTIONS,
                    message="conflictResolution must be skip, overwrite, or rename",
                ),
                "preserveIds": FieldRule(type="boolean", message="preserveIds must be a boolean"),
            }
        ),
    }
)


def resolve_schema(schema: Union[str, ValidationSchema]) -> ValidationSchema:
    try:
        return ValidationSchema(schema)
    except ValueError:
        raise UnknownSchemaError(schema) from None


def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return "null" if value is None else type(value).__name__


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _validate_field(name: str, value: Any, rule: FieldRule) -> list[ValidationIssue]:
    if _is_blank(value):
        if rule.required:
            return [ValidationIssue(f"{name} is required", "FIELD_REQUIRED", field=name)]
        return []

    if _type_name(value) != rule.type:
        return [
            ValidationIssue(rule.message or f"{name} must be of type {rule.type}", "INVALID_TYPE", field=name)
        ]

    issues: list[ValidationIssue] = []
    if rule.type == "string":
        if rule.min_length is not None and len(value) < rule.min_length:
            issues.append(
                ValidationIssue(
                    rule.message or f"{name} must be at least {rule.min_length} characters",
                    "MIN_LENGTH_VIOLATION",
                    field=name,
                )
            )
        if rule.max_length is not None and len(value) > rule.max_length:
            issues.append(
                ValidationIssue(
                    rule.message or f"{name} must be no more than {rule.max_length} characters",
                    "MAX_LENGTH_VIOLATION",
                    field=name,
                )
            )
        if rule.pattern is not None and not rule.pattern.fullmatch(value):
            issues.append(ValidationIssue(rule.message or f"{name} format is invalid", "PATTERN_VIOLATION", field=name))
        if rule.enum is not None and value not in rule.enum:
            issues.append(
                ValidationIssue(
                    rule.message or f"{name} must be one of: {', '.join(rule.enum)}",
                    "ENUM_VIOLATION",
                    field=name,
                )
            )

    elif rule.type == "array":
        if rule.max_items is not None and len(value) > rule.max_items:
            issues.append(
                ValidationIssue(
                    rule.message or f"{name} must have no more than {rule.max_items} items",
                    "MAX_ITEMS_VIOLATION",
                    field=name,
                )
            )
        if rule.min_items is not None and len(value) < rule.min_items:
            issues.append(
                ValidationIssue(
                    rule.message or f"{name} must have at least {rule.min_items} items",
                    "MIN_ITEMS_VIOLATION",
                    field=name,
                )
            )
        if rule.items is not None:
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if rule.items.type == "object" and rule.items.properties:
                    source = item if isinstance(item, Mapping) else {}
                    for prop, prop_rule in rule.items.properties.items():
                        issues.extend(_validate_field(f"{item_name}.{prop}", source.get(prop), prop_rule))
                else:
                    issues.extend(_validate_field(item_name, item, rule.items))

    elif rule.type == "object" and rule.properties:
        for prop, prop_rule in rule.properties.items():
            issues.extend(_validate_field(f"{name}.{prop}", value.get(prop), prop_rule))

    return issues


def validate_request_body(body: Mapping[str, Any], schema: Union[str, ValidationSchema]) -> ValidationResult:
    """Check ``body`` against the named rule table; unknown names raise :class:`UnknownSchemaError`."""
    schema_id = resolve_schema(schema)
    result = ValidationResult()
    for name, rule in SCHEMAS[schema_id].items():
        result.errors.extend(_validate_field(name, body.get(name), rule))

    parameters = body.get("parameters")
    if schema_id.kind is DocumentKind.SNIPPET and isinstance(parameters, list):
        names = [item.get("name") for item in parameters if isinstance(item, Mapping) and item.get("name")]
        if len(names) != len(set(names)):
            result.errors.append(
                ValidationIssue("Parameter names must be unique", "DUPLICATE_PARAMETER_NAMES", field="parameters")
            )
    return result


def _is_number_like(value: Any) -> bool:
    if isinstance(value, (bool, int)):
        return True
    if isinstance(value, float):
        return not math.isnan(value)
    if isinstance(value, str):
        try:
            number = float(value.strip() or "0")
        except ValueError:
            return False
        return not math.isnan(number)
    return False


def _is_boolean_like(value: Any) -> bool:
    return isinstance(value, bool) or value in ("true", "false")


_TYPE_CHECKS = {
    "string": lambda value: isinstance(value, str),
    "number": _is_number_like,
    "boolean": _is_boolean_like,
}


def validate_preview_request(
    body: Mapping[str, Any],
    kind: Union[str, DocumentKind],
    parameters: Optional[Iterable[Union[SnippetParameter, Mapping[str, Any]]]] = None,
) -> ValidationResult:
    """Check a preview body; for snippets, supplied values are matched against declared parameters."""
    result = ValidationResult()
    if body.get("sendTestEmail") and not body.get("testEmailAddress"):
        result.errors.append(
            ValidationIssue(
                "Test email address is required when sending test email",
                "TEST_EMAIL_REQUIRED",
                field="testEmailAddress",
            )
        )

    declared = [
        parameter if isinstance(parameter, SnippetParameter) else SnippetParameter.from_dict(dict(parameter))
        for parameter in parameters or ()
    ]
    values = body.get("parameters")
    if DocumentKind(kind) is not DocumentKind.SNIPPET or values is None or not declared:
        return result
    if not isinstance(values, Mapping):
        values = {}

    for parameter in declared:
        field = f"parameters.{parameter.name}"
        value = values.get(parameter.name)
        if _is_blank(value):
            if parameter.required:
                result.errors.append(
                    ValidationIssue(f"Parameter '{parameter.name}' is required", "REQUIRED_PARAMETER_MISSING", field=field)
                )
            continue
        check = _TYPE_CHECKS.get(parameter.type)
        if check is not None and not check(value):
            result.errors.append(
                ValidationIssue(
                    f"Parameter '{parameter.name}' must be a {parameter.type}", "INVALID_PARAMETER_TYPE", field=field
                )
            )
    return result

"""Static validation of template and snippet markup.

Errors (missing content, size, syntax, bad snippet references) always run.
Heuristic scanners for security, accessibility, style and nesting only add
warnings and can be switched off with ``check_best_practices=False``.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Union

from newsletter_templates.core.config import TemplateSettings

from .engine import compile_template
from .exceptions import TemplateSyntaxError
from .helpers import HELPER_NAMES
from .markup import analyze_blocks, check_delimiters, extract_partial_names, extract_references, scan_block_depth
from .models import SnippetParameter
from .validation import ValidationResult

SNIPPET_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")

RESERVED_SNIPPET_NAMES = frozenset(
    {
        "if",
        "each",
        "unless",
        "with",
        "else",
        "lookup",
        "log",
        "this",
        "blockHelperMissing",
        "helperMissing",
    }
)

_UNESCAPED_SCRIPT_RE = re.compile(r"\{\{\{[^}]*<\s*script", re.IGNORECASE)
_IMG_TAG_RE = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_ALT_ATTR_RE = re.compile(r"\balt\s*=", re.IGNORECASE)
_INLINE_STYLE_RE = re.compile(r"<[a-zA-Z][^>]*\sstyle\s*=", re.IGNORECASE)

DEFAULT_LIMITS = TemplateSettings()

Scanner = Callable[[str, ValidationResult, TemplateSettings], None]
ParameterLike = Union[SnippetParameter, Mapping[str, Any]]


def scan_unescaped_scripts(content: str, result: ValidationResult, limits: TemplateSettings) -> None:
    if _UNESCAPED_SCRIPT_RE.search(content):
        result.add_warning(
            "Unescaped output ({{{ }}}) containing <script> content may allow cross-site scripting",
            "POTENTIAL_XSS_SCRIPT",
        )


def scan_missing_alt(content: str, result: ValidationResult, limits: TemplateSettings) -> None:
    missing = [tag for tag in _IMG_TAG_RE.findall(content) if not _ALT_ATTR_RE.search(tag)]
    if missing:
        result.add_warning(
            f"{len(missing)} image(s) without an alt attribute; add alt text for accessibility",
            "MISSING_ALT_ATTRIBUTE",
        )


def scan_inline_styles(content: str, result: ValidationResult, limits: TemplateSettings) -> None:
    count = len(_INLINE_STYLE_RE.findall(content))
    if count:
        result.add_warning(
            f"{count} element(s) use inline style attributes; consider CSS classes instead",
            "INLINE_STYLES",
        )


def scan_nesting_depth(content: str, result: ValidationResult, limits: TemplateSettings) -> None:
    depth = scan_block_depth(content)
    if depth >= limits.deep_nesting_threshold:
        result.add_warning(
            f"Block helpers are nested {depth} levels deep; consider splitting into snippets",
            "DEEP_NESTING",
        )


BEST_PRACTICE_SCANNERS: tuple[Scanner, ...] = (
    scan_unescaped_scripts,
    scan_missing_alt,
    scan_inline_styles,
    scan_nesting_depth,
)


def _check_syntax(content: str, result: ValidationResult, *, oversized: bool = False) -> bool:
    try:
        if oversized:
            # 超限内容只做结构检查，避免整段编译
            check_delimiters(content)
            analyze_blocks(content)
        else:
            compile_template(content)
    except TemplateSyntaxError as exc:
        result.add_error(str(exc), "SYNTAX_ERROR", type="syntax")
        return False
    return True


def _check_snippet_references(content: str, result: ValidationResult) -> None:
    for name in extract_partial_names(content):
        if not SNIPPET_NAME_RE.match(name):
            result.add_error(
                f"Invalid snippet name '{name}': use only letters, numbers, hyphens and underscores",
                "INVALID_SNIPPET_NAME",
            )
        elif name in RESERVED_SNIPPET_NAMES:
            result.add_error(f"Snippet name '{name}' is reserved", "RESERVED_SNIPPET_NAME")


def validate_template(
    content: Optional[str],
    *,
    check_best_practices: bool = True,
    limits: TemplateSettings = DEFAULT_LIMITS,
) -> ValidationResult:
    result = ValidationResult()
    if content is None:
        result.add_error("Template content is required", "TEMPLATE_CONTENT_REQUIRED")
        return result
    if content == "":
        result.add_error("Template content cannot be empty", "TEMPLATE_CONTENT_EMPTY")
        return result

    oversized = len(content) >= limits.max_template_size
    if oversized:
        result.add_error(
            f"Template must be shorter than {limits.max_template_size} characters",
            "TEMPLATE_SIZE_EXCEEDED",
        )

    _check_syntax(content, result, oversized=oversized)
    _check_snippet_references(content, result)

    if check_best_practices:
        for scanner in BEST_PRACTICE_SCANNERS:
            scanner(content, result, limits)
    return result


def _normalize_parameters(parameters: Optional[Iterable[ParameterLike]]) -> list[SnippetParameter]:
    normalized: list[SnippetParameter] = []
    for parameter in parameters or ():
        if isinstance(parameter, SnippetParameter):
            normalized.append(parameter)
        else:
            normalized.append(SnippetParameter.from_dict(dict(parameter)))
    return normalized


def _check_parameter_usage(content: str, parameters: Sequence[SnippetParameter], result: ValidationResult) -> None:
    references = extract_references(content, HELPER_NAMES)
    used_roots = {reference.root for reference in references}
    declared = {parameter.name for parameter in parameters}

    for parameter in parameters:
        if parameter.required and parameter.name not in used_roots:
            result.add_warning(
                f"Required parameter '{parameter.name}' is never used in the snippet content",
                "UNUSED_REQUIRED_PARAMETER",
            )

    reported: set[str] = set()
    for reference in references:
        if reference.scoped or reference.root in declared or reference.root in reported:
            continue
        reported.add(reference.root)
        result.add_warning(
            f"Variable '{reference.root}' is used but not declared as a parameter",
            "UNDEFINED_PARAMETER",
        )


def validate_snippet(
    content: Optional[str],
    parameters: Optional[Iterable[ParameterLike]] = None,
    *,
    check_best_practices: bool = True,
    limits: TemplateSettings = DEFAULT_LIMITS,
) -> ValidationResult:
    result = ValidationResult()
    if content is None:
        result.add_error("Snippet content is required", "SNIPPET_CONTENT_REQUIRED")
        return result
    if content == "":
        result.add_error("Snippet content cannot be empty", "SNIPPET_CONTENT_EMPTY")
        return result

    oversized = len(content) >= limits.max_snippet_size
    if oversized:
        result.add_error(
            f"Snippet must be shorter than {limits.max_snippet_size} characters",
            "SNIPPET_SIZE_EXCEEDED",
        )

    syntax_ok = _check_syntax(content, result, oversized=oversized)
    _check_snippet_references(content, result)

    declared = _normalize_parameters(parameters)
    if declared:
        _check_parameter_usage(content, declared, result)

    if len(declared) > limits.max_parameters:
        result.add_warning(
            f"Snippet declares {len(declared)} parameters; keep it to {limits.max_parameters} or fewer",
            "TOO_MANY_PARAMETERS",
        )

    for parameter in declared:
        if not (parameter.description or "").strip():
            result.add_warning(
                f"Parameter '{parameter.name}' has no description",
                "MISSING_PARAMETER_DESCRIPTION",
            )

    if syntax_ok:
        stats = analyze_blocks(content)
        if stats.complexity > limits.complexity_threshold:
            result.add_warning(
                f"Snippet complexity score {stats.complexity} exceeds {limits.complexity_threshold}; "
                "consider simplifying nested blocks",
                "HIGH_COMPLEXITY",
            )

    if check_best_practices:
        for scanner in BEST_PRACTICE_SCANNERS:
            scanner(content, result, limits)
    return result

"""Handlebars render engine with tenant-scoped snippet resolution."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from pybars import Compiler

from .exceptions import (
    SnippetNotFoundError,
    SnippetRenderError,
    TemplateRenderError,
    TemplateSyntaxError,
)
from .helpers import Helper, build_helpers
from .markup import analyze_blocks, check_delimiters, extract_partial_names, rewrite_block_params
from .models import DocumentKind
from .repository import BlobStore, DocumentStore

logger = logging.getLogger(__name__)

CompiledTemplate = Callable[..., Any]

DEFAULT_MAX_RESOLUTION_DEPTH = 5


def compile_template(source: str) -> CompiledTemplate:
    """Compile Handlebars ``source``, raising :class:`TemplateSyntaxError` on failure."""
    if not isinstance(source, str):
        raise TemplateSyntaxError("Template source must be a string")
    check_delimiters(source)
    analyze_blocks(source)
    try:
        return Compiler().compile(rewrite_block_params(source))
    except Exception as exc:
        raise TemplateSyntaxError(str(exc)) from exc


def extract_used_snippets(content: str | None) -> list[str]:
    """Snippet names referenced through ``{{> name}}``, deduplicated in order."""
    if not content:
        return []
    return extract_partial_names(content)


def _empty_partial(*args: Any, **kwargs: Any) -> str:
    return ""


def render_snippet(
    content: str,
    params: Optional[Mapping[str, Any]] = None,
    *,
    helpers: Optional[Mapping[str, Helper]] = None,
) -> str:
    """Render a single snippet body; partial references are not resolved."""
    try:
        compiled = compile_template(content)
        return str(compiled(dict(params or {}), helpers=build_helpers(helpers)))
    except Exception as exc:
        raise SnippetRenderError(str(exc)) from exc


@dataclass(slots=True)
class ResolutionFailure:
    name: str
    reason: str


@dataclass(slots=True)
class _ResolvedSnippet:
    name: str
    partial: CompiledTemplate
    references: list[str]
    resolved: bool


@dataclass(slots=True)
class SnippetResolver:
    """Fetches snippet bodies for a tenant and compiles them into partials.

    Every name is resolved independently: a lookup, fetch or compile failure
    registers an empty partial for that name and is recorded in ``failures``.
    """

    tenant_id: str
    document_store: DocumentStore
    blob_store: BlobStore
    max_depth: int = DEFAULT_MAX_RESOLUTION_DEPTH
    failures: list[ResolutionFailure] = field(default_factory=list)

    async def resolve(self, names: list[str]) -> dict[str, CompiledTemplate]:
        partials: dict[str, CompiledTemplate] = {}
        graph: dict[str, list[str]] = {}
        pending = list(names)
        depth = 1

        while pending:
            if depth > self.max_depth:
                for name in pending:
                    self._fail(name, f"nested deeper than {self.max_depth} levels")
                    partials[name] = _empty_partial
                break

            resolved = await asyncio.gather(*(self._resolve_one(name) for name in pending))
            next_level: list[str] = []
            for snippet in resolved:
                partials[snippet.name] = snippet.partial
                if not snippet.resolved:
                    continue
                graph[snippet.name] = snippet.references
                for reference in snippet.references:
                    if reference not in partials and reference not in next_level:
                        next_level.append(reference)
            pending = next_level
            depth += 1

        for name in _cyclic_nodes(graph):
            self._fail(name, "circular snippet reference")
            partials[name] = _empty_partial
        return partials

    async def _resolve_one(self, name: str) -> _ResolvedSnippet:
        try:
            document = await self.document_store.query_document_by_name(self.tenant_id, DocumentKind.SNIPPET, name)
            if document is None:
                raise SnippetNotFoundError(name)
            body = await self.blob_store.get_blob(document["storage_key"])
            partial = compile_template(body)
        except Exception as exc:
            self._fail(name, str(exc))
            return _ResolvedSnippet(name=name, partial=_empty_partial, references=[], resolved=False)
        return _ResolvedSnippet(name=name, partial=partial, references=extract_used_snippets(body), resolved=True)

    def _fail(self, name: str, reason: str) -> None:
        logger.warning("Snippet %s could not be resolved for tenant %s: %s", name, self.tenant_id, reason)
        self.failures.append(ResolutionFailure(name=name, reason=reason))


def _cyclic_nodes(graph: Mapping[str, list[str]]) -> list[str]:
    """Names that take part in a reference cycle (iterative DFS colouring)."""
    white, grey, black = 0, 1, 2
    colour = {name: white for name in graph}
    cyclic: dict[str, None] = {}

    for root in graph:
        if colour[root] != white:
            continue
        path: list[str] = [root]
        iterators = [iter(graph[root])]
        colour[root] = grey
        while iterators:
            child = next(iterators[-1], None)
            if child is None:
                colour[path.pop()] = black
                iterators.pop()
                continue
            if child not in graph:
                continue
            if colour[child] == grey:
                for name in path[path.index(child):]:
                    cyclic.setdefault(name, None)
            elif colour[child] == white:
                colour[child] = grey
                path.append(child)
                iterators.append(iter(graph[child]))
    return list(cyclic)


async def render_template(
    content: str,
    data: Optional[Mapping[str, Any]],
    tenant_id: str,
    *,
    document_store: DocumentStore,
    blob_store: BlobStore,
    helpers: Optional[Mapping[str, Helper]] = None,
    max_depth: int = DEFAULT_MAX_RESOLUTION_DEPTH,
    resolver: Optional[SnippetResolver] = None,
) -> str:
    """Render ``content`` for ``tenant_id`` with snippet partials inlined.

    Syntax errors in ``content`` itself abort with :class:`TemplateRenderError`.
    Snippets that cannot be resolved render as empty output.
    """
    try:
        compiled = compile_template(content)
    except TemplateSyntaxError as exc:
        raise TemplateRenderError(str(exc)) from exc

    resolver = resolver or SnippetResolver(
        tenant_id=tenant_id,
        document_store=document_store,
        blob_store=blob_store,
        max_depth=max_depth,
    )
    partials = await resolver.resolve(extract_used_snippets(content))

    try:
        return str(compiled(dict(data or {}), helpers=build_helpers(helpers), partials=partials))
    except Exception as exc:
        raise TemplateRenderError(str(exc)) from exc


async def get_snippet_by_id(
    tenant_id: str,
    snippet_id: str,
    *,
    document_store: DocumentStore,
    blob_store: BlobStore,
) -> dict[str, Any]:
    """Load a snippet document together with its raw content."""
    document = await document_store.get_document(tenant_id, DocumentKind.SNIPPET, snippet_id)
    if document is None:
        raise SnippetNotFoundError(snippet_id)
    content = await blob_store.get_blob(document["storage_key"])
    return {**document, "content": content}

"""Lexical helpers for Handlebars markup.

Everything here works on raw text with regular expressions and a small block
stack. Nothing is compiled, so these helpers still produce useful answers for
markup the compiler would reject.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterator, Optional

from .exceptions import TemplateSyntaxError

_COMMENT_RE = re.compile(r"\{\{!--.*?--\}\}|\{\{![^}]*\}\}", re.DOTALL)
_TAG_RE = re.compile(r"\{\{(\{?)(.*?)\}?\}\}", re.DOTALL)
_PARTIAL_RE = re.compile(r"\{\{~?>\s*([^\s}~]+)")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$-]*$")
_BLOCK_PARAMS_RE = re.compile(r"\{\{(~?)#\s*(each|with)\s+([^{}]*?)\s+as\s+\|\s*([^|{}]*?)\s*\|\s*(~?)\}\}")

SCOPE_BLOCKS = frozenset({"each", "with"})
CONDITIONAL_BLOCKS = frozenset({"if", "unless"})
_LITERALS = frozenset({"true", "false", "null", "undefined"})


@dataclass(frozen=True, slots=True)
class Tag:
    kind: str
    name: str
    args: tuple[str, ...]
    line: int
    unescaped: bool = False


@dataclass(frozen=True, slots=True)
class Reference:
    root: str
    path: str
    scoped: bool


@dataclass(slots=True)
class BlockStats:
    max_depth: int = 0
    block_count: int = 0
    conditional_count: int = 0
    complexity: int = 0
    blocks: list[str] = field(default_factory=list)


def strip_comments(source: str) -> str:
    return _COMMENT_RE.sub("", source)


def _line_of(source: str, index: int) -> int:
    return source.count("\n", 0, index) + 1


def _split_args(expression: str) -> list[str]:
    tokens: list[str] = []
    current: list[str] = []
    quote: Optional[str] = None
    depth = 0
    for char in expression:
        if quote:
            current.append(char)
            if char == quote:
                quote = None
            continue
        if char in ("'", '"'):
            quote = char
            current.append(char)
        elif char == "(":
            depth += 1
            current.append(char)
        elif char == ")":
            depth -= 1
            current.append(char)
        elif char.isspace() and depth == 0:
            if current:
                tokens.append("".join(current))
                current = []
        else:
            current.append(char)
    if current:
        tokens.append("".join(current))
    return tokens


def _classify(body: str, line: int, unescaped: bool) -> Tag:
    body = body.strip().strip("~").strip()
    if not body:
        return Tag(kind="variable", name="", args=(), line=line, unescaped=unescaped)

    marker = body[0]
    if marker in "#^/>&":
        rest = body[1:].strip()
        tokens = _split_args(rest)
        name = tokens[0] if tokens else ""
        args = tuple(tokens[1:])
        if marker == "#":
            if "as" in args:
                # {{#each items as |item i|}}：块参数不属于参数列表
                cut = args.index("as")
                if cut + 1 < len(args) and args[cut + 1].startswith("|"):
                    args = args[:cut]
            return Tag(kind="open", name=name, args=args, line=line)
        if marker == "^":
            if not name:
                return Tag(kind="else", name="else", args=(), line=line)
            return Tag(kind="inverse", name=name, args=args, line=line)
        if marker == "/":
            return Tag(kind="close", name=name, args=args, line=line)
        if marker == ">":
            return Tag(kind="partial", name=name.strip("'\""), args=args, line=line)
        return Tag(kind="variable", name=name, args=args, line=line, unescaped=True)

    tokens = _split_args(body)
    if tokens and tokens[0] == "else":
        return Tag(kind="else", name="else", args=tuple(tokens[1:]), line=line)
    return Tag(kind="variable", name=tokens[0], args=tuple(tokens[1:]), line=line, unescaped=unescaped)


def iter_tags(source: str) -> Iterator[Tag]:
    """Yield every mustache tag in ``source`` with comments removed."""
    text = strip_comments(source)
    for match in _TAG_RE.finditer(text):
        yield _classify(match.group(2), _line_of(text, match.start()), bool(match.group(1)))


def check_delimiters(source: str) -> None:
    """Ensure every opening ``{{`` is closed before the next one starts."""
    text = strip_comments(source)
    length = len(text)
    position = 0
    while True:
        start = text.find("{{", position)
        if start == -1:
            return
        body_start = start
        while body_start < length and text[body_start] == "{":
            body_start += 1
        end = text.find("}}", body_start)
        following = text.find("{{", body_start)
        if end == -1 or (following != -1 and following < end):
            raise TemplateSyntaxError(f"Unclosed expression on line {_line_of(text, start)}")
        position = end + 2
        while position < length and text[position] == "}":
            position += 1


def analyze_blocks(source: str) -> BlockStats:
    """Walk block helpers, checking open/close pairing and measuring nesting."""
    stats = BlockStats()
    stack: list[Tag] = []
    for tag in iter_tags(source):
        if tag.kind in ("open", "inverse"):
            stack.append(tag)
            depth = len(stack)
            stats.block_count += 1
            stats.complexity += depth
            stats.max_depth = max(stats.max_depth, depth)
            stats.blocks.append(tag.name)
            if tag.name in CONDITIONAL_BLOCKS or tag.kind == "inverse":
                stats.conditional_count += 1
        elif tag.kind == "else":
            if not stack:
                raise TemplateSyntaxError(f"Unexpected {{{{else}}}} on line {tag.line}")
            stats.conditional_count += 1
            stats.complexity += 1
        elif tag.kind == "close":
            if not stack:
                raise TemplateSyntaxError(f"Unexpected closing tag {{{{/{tag.name}}}}} on line {tag.line}")
            opened = stack.pop()
            if opened.name != tag.name:
                raise TemplateSyntaxError(
                    f"{opened.name} doesn't match {tag.name} (opened on line {opened.line}, closed on line {tag.line})"
                )
    if stack:
        unclosed = stack[-1]
        raise TemplateSyntaxError(f"Block {unclosed.name} opened on line {unclosed.line} is never closed")
    return stats


def scan_block_depth(source: str) -> int:
    """Deepest block nesting reached, counting opens and closes without pairing them.

    Unlike :func:`analyze_blocks` this never raises, so it still measures
    markup whose closing tags are missing or mismatched.
    """
    depth = deepest = 0
    for tag in iter_tags(source):
        if tag.kind in ("open", "inverse"):
            depth += 1
            deepest = max(deepest, depth)
        elif tag.kind == "close":
            depth = max(depth - 1, 0)
    return deepest


def extract_partial_names(source: str) -> list[str]:
    """Distinct partial names in first-occurrence order."""
    seen: dict[str, None] = {}
    for match in _PARTIAL_RE.finditer(strip_comments(source)):
        name = match.group(1).strip("'\"")
        if name:
            seen.setdefault(name, None)
    return list(seen)


def _reference_from_token(token: str, scoped: bool) -> Optional[Reference]:
    if "=" in token and not token.startswith(("'", '"')):
        token = token.split("=", 1)[1]
    token = token.strip("()")
    if not token or token[0] in "'\"@." or token[0].isdigit() or token.startswith("-"):
        return None
    if token in _LITERALS or token == "this" or token.startswith(("this.", "this/", "../")):
        return None
    root = re.split(r"[./\[]", token, maxsplit=1)[0]
    if not _IDENTIFIER_RE.match(root):
        return None
    return Reference(root=root, path=token, scoped=scoped)


def extract_references(source: str, helper_names: frozenset[str] = frozenset()) -> list[Reference]:
    """Collect data paths referenced by variables and block arguments.

    References found inside ``each``/``with`` blocks are flagged as scoped
    since they resolve against the iterated item rather than the root context.
    """
    references: list[Reference] = []
    stack: list[str] = []
    for tag in iter_tags(source):
        scoped = any(name in SCOPE_BLOCKS for name in stack)
        if tag.kind in ("open", "inverse"):
            if tag.kind == "inverse":
                candidates: tuple[str, ...] = (tag.name,)
            elif tag.args:
                candidates = tag.args
            else:
                # {{#section}} 形式的块，本身就是数据引用
                candidates = (tag.name,)
            for token in candidates:
                reference = _reference_from_token(token, scoped)
                if reference:
                    references.append(reference)
            stack.append(tag.name)
        elif tag.kind == "close":
            if stack:
                stack.pop()
        elif tag.kind == "variable" and tag.name:
            if tag.args or tag.name in helper_names:
                candidates = tag.args
            else:
                candidates = (tag.name,)
            for token in candidates:
                reference = _reference_from_token(token, scoped)
                if reference:
                    references.append(reference)
        elif tag.kind == "partial":
            for token in tag.args:
                reference = _reference_from_token(token, scoped)
                if reference:
                    references.append(reference)
    return references


def _find_block_close(source: str, helper: str, start: int) -> Optional[int]:
    pattern = re.compile(r"\{\{~?\s*([#/])\s*" + re.escape(helper) + r"(?![\w$-])")
    depth = 1
    for match in pattern.finditer(source, start):
        depth += 1 if match.group(1) == "#" else -1
        if depth == 0:
            return match.start()
    return None


def _name_pattern(name: str) -> re.Pattern[str]:
    return re.compile(r"(?<![\w.@/$|'\"-])" + re.escape(name) + r"(?P<path>(?:\.[\w$-]+)*)(?![\w$=|-])")


def _rewrite_body(body: str, item: Optional[str], index: Optional[str]) -> str:
    item_re = _name_pattern(item) if item else None
    index_re = _name_pattern(index) if index else None

    def rewrite(text: str, depth: int) -> str:
        if item_re is not None:
            def item_path(match: re.Match[str]) -> str:
                path = match.group("path")[1:]
                if depth == 0:
                    return path or "this"
                parent = "/".join([".."] * depth)
                return f"{parent}/{path}" if path else parent

            text = item_re.sub(item_path, text)
        if index_re is not None and depth == 0:
            text = index_re.sub(lambda match: "@index" + match.group("path"), text)
        return text

    pieces: list[str] = []
    stack: list[str] = []
    depth = 0
    last = 0
    for match in _TAG_RE.finditer(body):
        tag = _classify(match.group(2), 0, bool(match.group(1)))
        text = match.group(0)
        if tag.kind == "partial":
            head = _PARTIAL_RE.match(text)
            split = head.end() if head else 0
            text = text[:split] + rewrite(text[split:], depth)
        else:
            text = rewrite(text, depth)
        pieces.append(body[last : match.start()])
        pieces.append(text)
        last = match.end()
        if tag.kind in ("open", "inverse"):
            stack.append(tag.name)
            if tag.name in SCOPE_BLOCKS:
                depth += 1
        elif tag.kind == "close" and stack:
            if stack.pop() in SCOPE_BLOCKS:
                depth -= 1
    pieces.append(body[last:])
    return "".join(pieces)


def rewrite_block_params(source: str) -> str:
    """Turn ``{{#each items as |item i|}}`` blocks into plain context blocks.

    pybars has no block parameters: inside the block ``item`` becomes the
    current context (``this``, or a ``../`` path from nested scopes) and ``i``
    becomes ``@index``. A block whose close tag is missing is left as written
    so the compiler reports it.
    """
    position = 0
    while True:
        match = _BLOCK_PARAMS_RE.search(source, position)
        if match is None:
            return source
        left_strip, helper, expression, names, right_strip = match.groups()
        close = _find_block_close(source, helper, match.end())
        if close is None:
            position = match.end()
            continue
        params = names.split()
        item = params[0] if params else None
        index = params[1] if len(params) > 1 and helper == "each" else None
        opening = "{{" + left_strip + "#" + helper + " " + expression + right_strip + "}}"
        body = _rewrite_body(source[match.end() : close], item, index)
        source = source[: match.start()] + opening + body + source[close:]
        position = match.start() + len(opening)

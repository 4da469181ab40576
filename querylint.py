#!/usr/bin/env python3
"""
querylint - AST-Based `uniqueidentifier` Conversion Checker for linq Queries
===========================================================================
A structural checker for JavaScript files using tree-sitter AST parsing.

Flags query text passed to `linq.execute(...)` / `linq.executeWritable(...)`
that converts a `uniqueidentifier` column to a string before comparing it,
e.g. `x.id.toString() === "..."`, and suggests comparing against
`new Guid("...")` instead.

Features:
- JavaScript AST parsing via tree-sitter (ES6+ with error recovery)
- Follows query text through `+` concatenation chains
- Follows query text through local variable assignment chains (scope aware)
- Character-accurate diagnostic ranges inside string and template literals
- Conservative auto-fixes (no fix is offered when the comparand is interpolated)
- Inline suppression comments (`// nolint`, `querylint:ignore`)
- Rich terminal UI, plain-text and JSON reports, in-place `--fix`

Requirements:
    pip install tree-sitter tree-sitter-javascript rich pyyaml

Usage:
    python3 querylint.py target.js
    python3 querylint.py /path/to/project --verbose
    python3 querylint.py app.js --output json -o report.json
    python3 querylint.py src/ --fix
"""

import os
import sys
import json
import argparse
import bisect
import re
import time
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Dict, Set, Optional, Tuple, Protocol
from enum import Enum
from datetime import datetime
from collections import defaultdict

import tree_sitter_javascript as tsjs
from tree_sitter import Language, Parser, Node

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.syntax import Syntax
from rich.columns import Columns
from rich.text import Text
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, MofNCompleteColumn
from rich.align import Align
from rich.rule import Rule
from rich import box

from querylint_config import load_config, ConfigError, QuerylintConfig, RuleConfig

console = Console()
err_console = Console(stderr=True)

JS_LANG = Language(tsjs.language())

__version__ = "1.0.0"

# ============================================================================
# Enums & Data Classes
# ============================================================================

class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    HINT = "hint"

RULE_ID = "no-id-tostring-in-query"
DIAGNOSTIC_MESSAGE = "Possible conversion of `uniqueidentifier` to `string`. This could impact performance."
FIX_DESCRIPTION = "Convert `string` to `Guid` instead"


@dataclass(frozen=True)
class Position:
    """1-based line and column. Columns count characters, not bytes."""
    line: int
    column: int


@dataclass(frozen=True)
class Location:
    """A source range. `end` is exclusive."""
    start: Position
    end: Position

    @property
    def key(self) -> Tuple[int, int, int, int]:
        return (self.start.line, self.start.column, self.end.line, self.end.column)

    def contains(self, other: 'Location') -> bool:
        return ((self.start.line, self.start.column) <= (other.start.line, other.start.column)
                and (other.end.line, other.end.column) <= (self.end.line, self.end.column))


@dataclass
class Fix:
    """A suggested text replacement over `offsets` (character offsets into the source)."""
    description: str
    replacement_text: str
    location: Location
    offsets: Tuple[int, int]


@dataclass
class Diagnostic:
    """A single report of the query rule."""
    message: str
    location: Location
    node: Optional[Node] = field(default=None, repr=False, compare=False)
    fixes: List[Fix] = field(default_factory=list)
    rule_id: str = RULE_ID
    severity: Severity = Severity.WARNING
    file_path: str = ""
    line_content: str = ""

    @property
    def line(self) -> int:
        return self.location.start.line

    @property
    def column(self) -> int:
        return self.location.start.column


# ============================================================================
# Pattern Constants
# ============================================================================

# `.<field>id.toString() <op> "` followed by an optional double-quoted comparand.
REPORT_PATTERN = re.compile(
    r'\.[a-z0-9]*?id\.toString\(\)\s*[!=]==?\s*"(?:[^"]*")?',
    re.IGNORECASE,
)
FIX_PATTERN = re.compile(
    r'(id)\.toString\(\)(\s*[!=]==?\s*)("[^"]*")',
    re.IGNORECASE,
)
# Inside template literals a comparand containing a `${` placeholder is left
# out of the match, so no fix is offered for it.
TEMPLATE_REPORT_PATTERN = re.compile(
    r'\.[a-z0-9]*?id\.toString\(\)\s*[!=]==?\s*"(?:(?:[^"$]|\$(?!\{))*")?',
    re.IGNORECASE,
)
TEMPLATE_FIX_PATTERN = re.compile(
    r'(id)\.toString\(\)(\s*[!=]==?\s*)("(?:[^"$]|\$(?!\{))*")',
    re.IGNORECASE,
)
FIX_REPLACEMENT = r'\1\2new Guid(\3)'

STRING_TYPES = {'string', 'template_string'}

FUNCTION_SCOPES = frozenset({
    'program', 'function_declaration', 'function_expression', 'function',
    'generator_function', 'generator_function_declaration', 'arrow_function',
    'method_definition', 'class_static_block',
})
FUNCTION_DECLARATIONS = frozenset({'function_declaration', 'generator_function_declaration'})
NAMED_FUNCTION_EXPRESSIONS = frozenset({'function_expression', 'function', 'generator_function'})
BLOCK_SCOPES = frozenset({
    'statement_block', 'for_statement', 'for_in_statement', 'catch_clause', 'switch_body',
})


# ============================================================================
# AST Helpers
# ============================================================================

def find_nodes(node: Node, type_name: str) -> List[Node]:
    """Find all nodes of a given type under `node` (inclusive), in source order."""
    results = []
    pending = [node]
    while pending:
        current = pending.pop()
        if current.type == type_name:
            results.append(current)
        pending.extend(reversed(current.children))
    return results


def node_text(node: Node) -> str:
    """Get the source text of a node."""
    return node.text.decode('utf-8') if node.text else ""


def get_child_by_field(node: Node, field_name: str) -> Optional[Node]:
    """Get child node by tree-sitter field name."""
    return node.child_by_field_name(field_name)


def get_call_args(node: Node) -> List[Node]:
    """Extract argument nodes from a call_expression's arguments list.

    Tagged templates (``linq.execute`...` ``) have no argument list and
    yield nothing.
    """
    args_node = get_child_by_field(node, 'arguments')
    if not args_node or args_node.type != 'arguments':
        return []
    return [c for c in args_node.children if c.is_named and c.type != 'comment']


def unwrap_parens(node: Node) -> Node:
    while node.type == 'parenthesized_expression':
        inner = [c for c in node.named_children if c.type != 'comment']
        if len(inner) != 1:
            break
        node = inner[0]
    return node


def pattern_identifiers(node: Node) -> List[str]:
    """Names bound by a parameter list or a destructuring pattern."""
    if node.type in ('identifier', 'shorthand_property_identifier_pattern'):
        return [node_text(node)]
    if node.type in ('assignment_pattern', 'object_assignment_pattern'):
        left = get_child_by_field(node, 'left')
        return pattern_identifiers(left) if left else []
    if node.type == 'pair_pattern':
        value = get_child_by_field(node, 'value')
        return pattern_identifiers(value) if value else []
    if node.type in ('formal_parameters', 'object_pattern', 'array_pattern', 'rest_pattern'):
        names = []
        for child in node.named_children:
            names.extend(pattern_identifiers(child))
        return names
    return []


def _node_key(node: Node) -> Tuple[int, int, str]:
    return (node.start_byte, node.end_byte, node.type)


class SourceText:
    """Character-based view of a source unit.

    tree-sitter reports byte offsets into the UTF-8 encoding; diagnostics and
    fixes are expressed in characters, so every node position goes through
    here.
    """

    def __init__(self, text: str):
        self.text = text
        self.data = text.encode('utf-8')
        self.lines = text.split('\n')
        self.line_starts = [0]
        for match in re.finditer('\n', text):
            self.line_starts.append(match.end())
        self._ascii = len(self.data) == len(text)
        self._char_offsets: Dict[int, int] = {}

    def char_offset(self, byte_offset: int) -> int:
        if self._ascii:
            return byte_offset
        offset = self._char_offsets.get(byte_offset)
        if offset is None:
            offset = len(self.data[:byte_offset].decode('utf-8', errors='replace'))
            self._char_offsets[byte_offset] = offset
        return offset

    def span(self, node: Node) -> Tuple[int, int]:
        return self.char_offset(node.start_byte), self.char_offset(node.end_byte)

    def node_text(self, node: Node) -> str:
        start, end = self.span(node)
        return self.text[start:end]

    def position(self, offset: int) -> Position:
        index = bisect.bisect_right(self.line_starts, offset) - 1
        return Position(index + 1, offset - self.line_starts[index] + 1)

    def location(self, start: int, end: int) -> Location:
        return Location(self.position(start), self.position(end))

    def line(self, line_number: int) -> str:
        if 0 < line_number <= len(self.lines):
            return self.lines[line_number - 1]
        return ""


# ============================================================================
# Scope Resolution
# ============================================================================

class ScopeLookup(Protocol):
    def lookup_declaration(self, name: str, at_node: Node) -> Optional[Node]:
        """Return the nearest simple `variable_declarator` binding `name`, or None."""
        ...


@dataclass
class Binding:
    """A name declared in a scope.

    kind is one of: variable, pattern, parameter, function, class, import,
    catch, loop. Only `variable` bindings point at a usable declarator.
    """
    name: str
    kind: str
    node: Optional[Node] = None


class TreeSitterScope:
    """Resolves identifiers to their declarations over a tree-sitter JavaScript tree.

    Scopes follow JavaScript rules closely enough for query tracking:
    `var` belongs to the nearest function (or the program), `let`/`const`,
    functions and classes to the nearest block, parameters to their
    function. The first declaration of a name in a scope wins.
    """

    def __init__(self, root: Node):
        self.root = root
        self._bindings: Dict[Tuple[int, int, str], Dict[str, Binding]] = {}

    def lookup_declaration(self, name: str, at_node: Node) -> Optional[Node]:
        binding = self.lookup_binding(name, at_node)
        if binding is None or binding.kind != 'variable':
            return None
        return binding.node

    def lookup_binding(self, name: str, at_node: Node) -> Optional[Binding]:
        scope = at_node.parent
        while scope is not None:
            if scope.type in FUNCTION_SCOPES or scope.type in BLOCK_SCOPES:
                binding = self.bindings_of(scope).get(name)
                if binding is not None:
                    return binding
            scope = scope.parent
        return None

    def bindings_of(self, scope: Node) -> Dict[str, Binding]:
        key = _node_key(scope)
        bindings = self._bindings.get(key)
        if bindings is None:
            bindings = {}
            self._collect_bindings(scope, bindings)
            self._bindings[key] = bindings
        return bindings

    def _collect_bindings(self, scope: Node, bindings: Dict[str, Binding]):
        if scope.type in FUNCTION_SCOPES and scope.type != 'program':
            params = get_child_by_field(scope, 'parameters') or get_child_by_field(scope, 'parameter')
            if params is not None:
                for name in pattern_identifiers(params):
                    self._bind(bindings, name, 'parameter', params)
        elif scope.type == 'catch_clause':
            param = get_child_by_field(scope, 'parameter')
            if param is not None:
                for name in pattern_identifiers(param):
                    self._bind(bindings, name, 'catch', param)
        elif scope.type == 'for_in_statement':
            left = get_child_by_field(scope, 'left')
            if left is not None and get_child_by_field(scope, 'kind') is not None:
                for name in pattern_identifiers(left):
                    self._bind(bindings, name, 'loop', left)

        self._walk_declarations(scope, bindings)

        # A named function expression sees its own name, unless shadowed
        if scope.type in NAMED_FUNCTION_EXPRESSIONS:
            name = get_child_by_field(scope, 'name')
            if name is not None:
                self._bind(bindings, node_text(name), 'function', scope)

    def _walk_declarations(self, scope: Node, bindings: Dict[str, Binding]):
        pending = [(child, False) for child in reversed(scope.named_children)]
        while pending:
            child, nested = pending.pop()
            kind = child.type
            if kind in FUNCTION_SCOPES:
                if kind in FUNCTION_DECLARATIONS and not nested:
                    name = get_child_by_field(child, 'name')
                    if name is not None:
                        self._bind(bindings, node_text(name), 'function', child)
                continue
            if kind == 'class_declaration':
                name = get_child_by_field(child, 'name')
                if name is not None and not nested:
                    self._bind(bindings, node_text(name), 'class', child)
                continue
            if kind == 'import_statement':
                for clause in child.named_children:
                    if clause.type == 'import_clause':
                        for ident in find_nodes(clause, 'identifier'):
                            self._bind(bindings, node_text(ident), 'import', child)
                continue
            if kind == 'variable_declaration':
                if scope.type in FUNCTION_SCOPES:
                    self._bind_declarators(child, bindings)
                continue
            if kind == 'lexical_declaration':
                if not nested:
                    self._bind_declarators(child, bindings)
                continue
            if kind in BLOCK_SCOPES:
                # Only `var` declarations escape a nested block
                if scope.type in FUNCTION_SCOPES:
                    pending.extend((c, True) for c in reversed(child.named_children))
                continue
            pending.extend((c, nested) for c in reversed(child.named_children))

    def _bind_declarators(self, declaration: Node, bindings: Dict[str, Binding]):
        for declarator in declaration.named_children:
            if declarator.type != 'variable_declarator':
                continue
            name = get_child_by_field(declarator, 'name')
            if name is None:
                continue
            if name.type == 'identifier':
                self._bind(bindings, node_text(name), 'variable', declarator)
            else:
                for bound in pattern_identifiers(name):
                    self._bind(bindings, bound, 'pattern', declarator)

    @staticmethod
    def _bind(bindings: Dict[str, Binding], name: str, kind: str, node: Node):
        if name not in bindings:
            bindings[name] = Binding(name=name, kind=kind, node=node)


# ============================================================================
# Rule Building Blocks
# ============================================================================

def is_query_call(call: Node, config: RuleConfig) -> bool:
    """True for `<object>.<method>(arg, ...)` with a configured object and method."""
    callee = get_child_by_field(call, 'function')
    if callee is None or callee.type != 'member_expression':
        return False

    obj = get_child_by_field(callee, 'object')
    method = get_child_by_field(callee, 'property')
    if obj is None or method is None:
        return False
    if obj.type != 'identifier' or method.type != 'property_identifier':
        return False

    if node_text(obj) != config.object_name or node_text(method) not in config.method_names:
        return False
    return len(get_call_args(call)) > 0


def _binary_operator(node: Node) -> Optional[str]:
    operator = get_child_by_field(node, 'operator')
    return operator.type if operator is not None else None


def flatten_expression(expression: Node) -> List[Node]:
    """Split a `+` concatenation chain into its operands, in source order.

    `a + b + c` gives `[a, b, c]`; parentheses are transparent, so
    `a + (b + c)` gives the same. Anything that is not a `+` chain is a
    single leaf, and a spread element gives nothing.
    """
    if expression.type == 'spread_element':
        return []

    leaves = []
    pending = [expression]
    while pending:
        node = unwrap_parens(pending.pop())
        if node.type == 'binary_expression' and _binary_operator(node) == '+':
            left = get_child_by_field(node, 'left')
            right = get_child_by_field(node, 'right')
            if right is not None:
                pending.append(right)
            if left is not None:
                pending.append(left)
            continue
        leaves.append(node)
    return leaves


def scan_literal(text: str, template: bool = False) -> List[re.Match]:
    """Find every risky comparison in the raw text of a string or template literal."""
    pattern = TEMPLATE_REPORT_PATTERN if template else REPORT_PATTERN
    return list(pattern.finditer(text))


def generate_fix(literal_text: str, start: int, end: int, template: bool = False) -> Optional[str]:
    """Rewrite `id.toString() === "v"` inside literal_text[start:end] to `id === new Guid("v")`.

    Returns None when there is nothing safe to rewrite (e.g. the comparand is
    a template placeholder rather than a quoted literal).
    """
    pattern = TEMPLATE_FIX_PATTERN if template else FIX_PATTERN
    original = literal_text[start:end]
    replaced = pattern.sub(FIX_REPLACEMENT, original, count=1)
    if replaced == original:
        return None
    return replaced


def _has_reliable_location(node: Node) -> bool:
    return not node.is_missing and not node.has_error and node.end_byte > node.start_byte


# ============================================================================
# Rule
# ============================================================================

class IdToStringInQueryRule:
    """Reports `.id.toString()` comparisons inside linq query text.

    One instance analyzes one syntax tree. Reported locations are tracked on
    the instance so the same range is reported once, however many call sites
    or variable chains lead to it.
    """

    def __init__(self, root: Node, source: SourceText, scope: ScopeLookup,
                 config: Optional[RuleConfig] = None):
        self.root = root
        self.source = source
        self.scope = scope
        self.config = config or RuleConfig()
        self.diagnostics: List[Diagnostic] = []
        self._reported: Set[Tuple[int, int, int, int]] = set()
        self._expanded: Set[Tuple[int, int, str]] = set()

    def analyze(self) -> List[Diagnostic]:
        for call in find_nodes(self.root, 'call_expression'):
            if not is_query_call(call, self.config):
                continue
            query = get_call_args(call)[0]
            if query.type == 'spread_element':
                continue
            self.check_expression(query)
        return self.diagnostics

    def check_expression(self, expression: Node):
        """Check every literal reachable from `expression`, depth first in source order."""
        pending = list(reversed(flatten_expression(expression)))
        while pending:
            leaf = pending.pop()
            if leaf.type in STRING_TYPES:
                self.check_string(leaf)
            elif leaf.type == 'identifier':
                value = self.resolve_variable(leaf)
                if value is not None:
                    pending.extend(reversed(flatten_expression(value)))

    def check_string(self, literal: Node):
        if not _has_reliable_location(literal):
            return
        text = self.source.node_text(literal)
        template = literal.type == 'template_string'
        for match in scan_literal(text, template):
            self.report(literal, text, match, template)

    def resolve_variable(self, identifier: Node) -> Optional[Node]:
        """Initializer of the variable `identifier` refers to.

        Each declarator is expanded at most once per run: anything reachable a
        second time was already reported, and cycles end here.
        """
        declarator = self.scope.lookup_declaration(node_text(identifier), identifier)
        if declarator is None:
            return None
        key = _node_key(declarator)
        if key in self._expanded:
            return None
        self._expanded.add(key)
        return get_child_by_field(declarator, 'value')

    def compute_location(self, literal: Node, match: re.Match) -> Tuple[Location, int, int]:
        """Locate a match inside a literal, skipping its leading '.'.

        Returns the location plus the character offsets it covers.
        """
        literal_start, _ = self.source.span(literal)
        start = literal_start + match.start() + 1
        end = literal_start + match.end()
        return self.source.location(start, end), start, end

    def report(self, literal: Node, text: str, match: re.Match, template: bool = False):
        location, start, end = self.compute_location(literal, match)
        if location.key in self._reported:
            return
        self._reported.add(location.key)

        fixes = []
        literal_start, _ = self.source.span(literal)
        replacement = generate_fix(text, start - literal_start, end - literal_start, template)
        if replacement is not None:
            fixes.append(Fix(
                description=FIX_DESCRIPTION,
                replacement_text=replacement,
                location=location,
                offsets=(start, end),
            ))

        self.diagnostics.append(Diagnostic(
            message=DIAGNOSTIC_MESSAGE,
            location=location,
            node=literal,
            fixes=fixes,
        ))


# ============================================================================
# Analyzer
# ============================================================================

class JSQueryAnalyzer:
    """Parses one JavaScript source unit and runs the query rule on it."""

    def __init__(self, source_code: str, file_path: str = "<input>",
                 config: Optional[QuerylintConfig] = None):
        self.source_code = source_code
        self.file_path = file_path
        self.config = config or QuerylintConfig()
        self.source = SourceText(source_code)

        parser = Parser(JS_LANG)
        self.tree = parser.parse(self.source.data)
        self.root = self.tree.root_node
        self.scope = TreeSitterScope(self.root)

    def analyze(self) -> List[Diagnostic]:
        rule = IdToStringInQueryRule(self.root, self.source, self.scope, self.config.rule)
        severity = Severity(self.config.severity)
        diagnostics = rule.analyze()
        for d in diagnostics:
            d.severity = severity
            d.file_path = self.file_path
            d.line_content = self.source.line(d.line)
        diagnostics.sort(key=lambda d: (d.line, d.column))
        return diagnostics


def lint_source(source_code: str, file_path: str = "<input>",
                config: Optional[QuerylintConfig] = None) -> List[Diagnostic]:
    return JSQueryAnalyzer(source_code, file_path, config).analyze()


def filter_findings(findings: List[Diagnostic], suppression_keyword: str = "nolint") -> List[Diagnostic]:
    """Drop diagnostics whose line carries an inline suppression comment."""
    result = []
    for f in findings:
        if re.search(rf'(?://|/\*)\s*{re.escape(suppression_keyword)}\b', f.line_content):
            continue
        if 'querylint:ignore' in f.line_content:
            continue
        result.append(f)
    return result


# ============================================================================
# Fixing
# ============================================================================

MAX_FIX_PASSES = 10


def apply_fixes(source_code: str, diagnostics: List[Diagnostic]) -> Tuple[str, int]:
    """Apply the first fix of every diagnostic, skipping fixes that overlap.

    Returns the new text and the number of fixes applied.
    """
    fixes = sorted((d.fixes[0] for d in diagnostics if d.fixes), key=lambda f: f.offsets)
    parts = []
    cursor = 0
    applied = 0
    for fix in fixes:
        start, end = fix.offsets
        if start < cursor:
            continue
        parts.append(source_code[cursor:start])
        parts.append(fix.replacement_text)
        cursor = end
        applied += 1
    parts.append(source_code[cursor:])
    return ''.join(parts), applied


def fix_source(source_code: str, file_path: str = "<input>",
               config: Optional[QuerylintConfig] = None) -> Tuple[str, List[Diagnostic]]:
    """Lint and fix until nothing more applies.

    Returns the fixed text and the diagnostics still present in it.
    """
    config = config or QuerylintConfig()
    diagnostics = filter_findings(lint_source(source_code, file_path, config), config.suppression_keyword)
    for _ in range(MAX_FIX_PASSES):
        fixed, applied = apply_fixes(source_code, diagnostics)
        if not applied:
            break
        source_code = fixed
        diagnostics = filter_findings(lint_source(source_code, file_path, config), config.suppression_keyword)
    return source_code, diagnostics


# ============================================================================
# Rich UI Output
# ============================================================================

def _print_banner():
    title_content = Text()
    title_content.append("QUERYLINT", style="bold yellow")
    title_content.append("\n\n")
    title_content.append(f"Tree-sitter AST linq Query Checker v{__version__}\n", style="bold white")
    title_content.append(f"{RULE_ID} | concatenation chains | variable chains | auto-fix", style="dim")

    console.print()
    console.print(Panel(
        Align.center(title_content),
        border_style="yellow",
        box=box.DOUBLE,
        padding=(1, 2),
    ))
    console.print()


def _build_stats_sidebar(findings: List[Diagnostic], file_count: int, elapsed: float,
                         fixed_files: List[str]) -> Panel:
    stats = Table(show_header=False, box=None, padding=(0, 1), expand=True)
    stats.add_column("key", style="bold cyan", no_wrap=True, ratio=3)
    stats.add_column("value", style="white", ratio=1)
    stats.add_row("Files Scanned", str(file_count))
    stats.add_row("Total Findings", str(len(findings)))
    stats.add_row("Fixable", str(sum(1 for f in findings if f.fixes)))
    if fixed_files:
        stats.add_row("Files Fixed", str(len(fixed_files)))
    stats.add_row("Scan Time", f"{elapsed:.2f}s")
    stats.add_row("Engine", "tree-sitter AST")
    stats.add_row("", "")

    sev_counts = defaultdict(int)
    for f in findings:
        sev_counts[f.severity.value] += 1
    sev_styles = {'error': 'bold red', 'warning': 'yellow', 'info': 'cyan', 'hint': 'green'}
    for sev in ['error', 'warning', 'info', 'hint']:
        count = sev_counts.get(sev, 0)
        if count > 0:
            stats.add_row(Text(sev.upper(), style=sev_styles.get(sev, "white")), str(count))

    return Panel(stats, title="[bold white]Scan Statistics[/bold white]",
                 border_style="cyan", box=box.ROUNDED, padding=(1, 1))


def _build_finding_panel(f: Diagnostic, source_code: Optional[str] = None) -> Panel:
    sev = f.severity.value
    border_map = {'error': 'bold red', 'warning': 'yellow', 'info': 'cyan', 'hint': 'green'}
    sev_style_map = {'error': 'bold white on red', 'warning': 'bold yellow',
                     'info': 'bold cyan', 'hint': 'bold green'}

    title = Text()
    title.append(f" {sev.upper()} ", style=sev_style_map.get(sev, "white"))
    title.append(f" {f.rule_id} ", style="bold white")

    content_parts = []

    loc = Text()
    loc.append("Location: ", style="bold cyan")
    loc.append(f"Line {f.location.start.line}, Col {f.location.start.column}", style="white")
    loc.append(f" - Line {f.location.end.line}, Col {f.location.end.column}", style="dim")
    fixable = Text()
    fixable.append("Fix: ", style="bold magenta")
    fixable.append("available" if f.fixes else "none (manual change needed)", style="white")
    content_parts.append(Columns([loc, fixable], padding=(0, 4)))

    desc = Text()
    desc.append(f"\n{f.message}", style="italic white")
    content_parts.append(desc)

    code_line = f.line_content.strip()
    if code_line:
        if source_code:
            src_lines = source_code.split('\n')
            start = max(0, f.line - 3)
            end = min(len(src_lines), f.line + 2)
            snippet = '\n'.join(src_lines[start:end])
            syntax = Syntax(snippet, "javascript", theme="monokai",
                            line_numbers=True, start_line=start + 1,
                            highlight_lines={f.line})
        else:
            syntax = Syntax(code_line, "javascript", theme="monokai",
                            line_numbers=True, start_line=f.line)
        content_parts.append(Text(""))
        content_parts.append(syntax)

    for fix in f.fixes:
        rem = Text()
        rem.append(f"\n{fix.description}: ", style="bold yellow")
        rem.append(fix.replacement_text, style="dim white")
        content_parts.append(rem)

    return Panel(Group(*content_parts), title=title,
                 border_style=border_map.get(sev, 'white'),
                 box=box.ROUNDED, padding=(1, 2))


def output_rich(findings: List[Diagnostic], target: str, file_count: int,
                elapsed: float, fixed_files: Optional[List[str]] = None):
    fixed_files = fixed_files or []
    scan_date = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
    header = Text()
    header.append("Target: ", style="bold cyan")
    header.append(f"{target}  ", style="white")
    header.append("Date: ", style="bold cyan")
    header.append(f"{scan_date}", style="white")

    console.print(Panel(Align.center(header), title="[bold white]Scan Info[/bold white]",
                        border_style="blue", box=box.ROUNDED))
    console.print()
    console.print(_build_stats_sidebar(findings, file_count, elapsed, fixed_files))
    console.print()

    for fp in fixed_files:
        console.print(Text(f"FIXED: {fp}", style="bold green"))
    if fixed_files:
        console.print()

    if findings:
        console.print(Rule("[bold white]Findings[/bold white]", style="yellow"))
        console.print()

        source_cache: Dict[str, Optional[str]] = {}
        findings_by_file = defaultdict(list)
        for f in findings:
            findings_by_file[f.file_path].append(f)

        for fp, file_findings in sorted(findings_by_file.items()):
            console.print(Text(f"FILE: {fp}", style="bold underline cyan"))
            console.print()
            if fp not in source_cache:
                source_cache[fp], _ = read_file(fp)
            src = source_cache.get(fp)
            for f in sorted(file_findings, key=lambda x: (x.line, x.column)):
                console.print(_build_finding_panel(f, source_code=src))
                console.print()
    else:
        console.print(Panel(
            Align.center(Text("No findings.", style="bold green")),
            border_style="green", box=box.ROUNDED, padding=(1, 4)))


def output_text_plain(findings: List[Diagnostic], file_path: str):
    with open(file_path, 'w', encoding='utf-8') as out:
        for f in findings:
            out.write(f"\n{'='*70}\n")
            out.write(f"  [{f.severity.value.upper()}] {f.rule_id}\n")
            out.write(f"  File: {f.file_path}:{f.line}:{f.column}\n")
            out.write(f"  Code: {f.line_content.strip()}\n")
            out.write(f"  Message: {f.message}\n")
            for fix in f.fixes:
                out.write(f"  Fix: {fix.description}\n")
                out.write(f"    -> {fix.replacement_text}\n")
        out.write(f"\n{'='*70}\n")
        out.write(f"Total findings: {len(findings)}\n")


def _location_dict(location: Location) -> dict:
    return {
        "line": location.start.line, "column": location.start.column,
        "end_line": location.end.line, "end_column": location.end.column,
    }


def findings_to_json(findings: List[Diagnostic]) -> dict:
    return {
        "scan_date": datetime.now().isoformat(),
        "scanner": f"querylint v{__version__}",
        "total_findings": len(findings),
        "findings": [
            {
                "file": f.file_path, "rule": f.rule_id, "severity": f.severity.value,
                "message": f.message, **_location_dict(f.location),
                "code": f.line_content,
                "fixes": [
                    {"description": fix.description, "replacement": fix.replacement_text,
                     **_location_dict(fix.location)}
                    for fix in f.fixes
                ],
            }
            for f in findings
        ],
        "summary": {
            "by_severity": dict(sorted({
                sev: sum(1 for f in findings if f.severity.value == sev)
                for sev in set(f.severity.value for f in findings)
            }.items())) if findings else {},
            "by_file": dict(sorted({
                fp: sum(1 for f in findings if f.file_path == fp)
                for fp in set(f.file_path for f in findings)
            }.items())) if findings else {},
        }
    }


def output_json(findings: List[Diagnostic], file_path: str = None):
    json_str = json.dumps(findings_to_json(findings), indent=2)
    if file_path:
        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(json_str)
    else:
        print(json_str)


# ============================================================================
# Scan Orchestration & File Discovery
# ============================================================================

SUPPORTED_EXTENSIONS = {'.js', '.jsx', '.mjs', '.cjs', '.ts', '.tsx'}
SKIP_DIRS = {'node_modules', '.git', 'vendor', 'dist', 'build', '.next', '__pycache__',
             'bower_components', 'jspm_packages', 'third_party', 'third-party'}
SKIP_PATTERNS = ['node_modules', 'vendor', 'dist/', 'build/',
                 'bundle.js', 'chunk.', '.bundle.', '.map']

# Bundled/minified build artifacts: if any pattern appears in the filename, skip it
SKIP_VENDOR_FILES = {
    '.min.js', '.bundle.js', '.chunk.js', '-min.js', '.prod.js', '.production.js',
    'webpack-runtime', 'runtime~', 'vendors~', 'vendor.',
}


def should_skip_file(file_path: str) -> bool:
    path_lower = file_path.lower()
    if any(p in path_lower for p in SKIP_PATTERNS):
        return True
    filename_lower = os.path.basename(path_lower)
    return any(p in filename_lower for p in SKIP_VENDOR_FILES)


def detect_minified(content: str, file_path: str) -> bool:
    if not content:
        return False
    lines = content.split('\n')
    if len(lines) < 10 and len(content) > 5000:
        return True
    non_empty = [l for l in lines if l.strip()]
    if non_empty and sum(len(l) for l in non_empty) / len(non_empty) > 500:
        return True
    if any(len(l) > 1000 for l in lines):
        return True
    filename = os.path.basename(file_path).lower()
    return '.min.' in filename or '-min.' in filename


def read_file(file_path: str) -> Tuple[Optional[str], Optional[str]]:
    """Read a file, returning (content, encoding) or (None, None) when unreadable."""
    for encoding in ['utf-8', 'latin-1', 'cp1252']:
        try:
            with open(file_path, 'r', encoding=encoding, newline='') as f:
                return f.read(), encoding
        except UnicodeDecodeError:
            continue
        except OSError:
            return None, None
    return None, None


def collect_files(target: str, config: Optional[QuerylintConfig] = None) -> List[str]:
    target_path = Path(target)
    files = []
    if target_path.is_file():
        fp = str(target_path)
        if not (config and config.should_exclude(fp)):
            files.append(fp)
    elif target_path.is_dir():
        for root, dirs, filenames in os.walk(str(target_path)):
            dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
            for fname in sorted(filenames):
                fp = os.path.join(root, fname)
                ext = Path(fp).suffix.lower()
                if ext in SUPPORTED_EXTENSIONS and not should_skip_file(os.path.relpath(fp, target)):
                    if config and config.should_exclude(fp):
                        continue
                    files.append(fp)
    return files


def scan_js_file(file_path: str, content: str, config: QuerylintConfig,
                 fix: bool = False) -> Tuple[List[Diagnostic], Optional[str]]:
    """Scan one JS file. With fix=True also returns the fixed text when it changed."""
    if fix:
        fixed, findings = fix_source(content, file_path, config)
        return findings, (fixed if fixed != content else None)
    findings = lint_source(content, file_path, config)
    return filter_findings(findings, config.suppression_keyword), None


def scan_path(target: str, config: Optional[QuerylintConfig] = None, show_progress: bool = True,
              fix: bool = False, verbose: bool = False) -> Tuple[List[Diagnostic], int, float, List[str]]:
    """Scan a file or directory. Returns (findings, file_count, elapsed, fixed_files)."""
    config = config or QuerylintConfig()
    start = time.time()
    all_findings: List[Diagnostic] = []
    fixed_files: List[str] = []
    file_count = 0

    files = collect_files(target, config)

    def scan_one(fp: str):
        nonlocal file_count
        content, encoding = read_file(fp)
        if not content:
            return
        file_count += 1
        if verbose:
            console.print(Text(f"Scanning {fp}", style="dim"))
        if (show_progress or verbose) and detect_minified(content, fp):
            console.print(Panel(
                Text(f"Minified file: {os.path.basename(fp)}\nLocations may be hard to read.", style="yellow"),
                title="[bold yellow]Warning[/bold yellow]",
                border_style="yellow", box=box.ROUNDED
            ))
        try:
            findings, fixed = scan_js_file(fp, content, config, fix=fix)
        except Exception as e:
            # One unparseable file must not abort the whole scan
            err_console.print(Text(f"Error scanning {fp}: {type(e).__name__}: {e}", style="bold red"))
            return
        if fixed is not None:
            with open(fp, 'w', encoding=encoding, newline='') as out:
                out.write(fixed)
            fixed_files.append(fp)
        all_findings.extend(findings)

    if show_progress and files and not verbose:
        with Progress(
            SpinnerColumn(), TextColumn("[progress.description]{task.description}"),
            BarColumn(), MofNCompleteColumn(), console=console
        ) as progress:
            task = progress.add_task("[cyan]Scanning files...", total=len(files))
            for fp in files:
                scan_one(fp)
                progress.advance(task)
    else:
        for fp in files:
            scan_one(fp)

    elapsed = time.time() - start
    return all_findings, file_count, elapsed, fixed_files


# ============================================================================
# Main
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='querylint - flags `uniqueidentifier` to string conversions in linq query text'
    )
    parser.add_argument('target', help='File or directory to scan')
    parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')
    parser.add_argument('--output', choices=['text', 'json'], default='text', help='Output format')
    parser.add_argument('-o', '--output-file', help='Save report to file')
    parser.add_argument('--fix', action='store_true', help='Apply suggested fixes in place')
    parser.add_argument('--object', help='Query object name (default: linq)')
    parser.add_argument('--method', action='append',
                        help='Query method name, repeatable (default: execute, executeWritable)')
    parser.add_argument('--no-banner', action='store_true', help='Suppress banner')
    parser.add_argument('--config', help='Path to .querylint.yml config file')

    args = parser.parse_args(argv)

    if not os.path.exists(args.target):
        err_console.print(Text(f"Error: {args.target} does not exist", style="bold red"))
        return 1

    try:
        config = load_config(args.target, args.config)
    except ConfigError as e:
        err_console.print(Text(f"Config error: {e}", style="bold red"))
        return 2
    config.rule = config.rule.with_overrides(args.object, args.method)

    is_json = args.output == 'json'

    if not args.no_banner and not is_json:
        _print_banner()

    findings, file_count, elapsed, fixed_files = scan_path(
        args.target,
        config=config,
        show_progress=not is_json,
        fix=args.fix,
        verbose=args.verbose and not is_json,
    )
    findings.sort(key=lambda f: (f.file_path, f.line, f.column))

    if is_json:
        output_json(findings, args.output_file)
    else:
        output_rich(findings, args.target, file_count, elapsed, fixed_files)
        if args.output_file:
            output_text_plain(findings, args.output_file)
            console.print(Text(f"\nReport saved to {args.output_file}", style="bold green"))

    failing = sum(1 for f in findings if f.severity in (Severity.ERROR, Severity.WARNING))
    return 1 if failing > 0 else 0


if __name__ == '__main__':
    sys.exit(main())

"""
Pytest configuration and shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Make the root modules importable without installing
sys.path.insert(0, str(Path(__file__).parent.parent))

from tree_sitter import Parser

from querylint import JS_LANG, find_nodes, lint_source, node_text
from querylint_config import QuerylintConfig, RuleConfig


# =============================================================================
# PARSING HELPERS
# =============================================================================

def parse(source: str):
    """Parse JavaScript and return the root node."""
    return Parser(JS_LANG).parse(source.encode('utf-8')).root_node


def last_identifier(root, name: str):
    """The last identifier node named `name` (typically the use site)."""
    matches = [n for n in find_nodes(root, 'identifier') if node_text(n) == name]
    assert matches, f"no identifier {name!r}"
    return matches[-1]


# =============================================================================
# LINT FIXTURES
# =============================================================================

@pytest.fixture
def lint():
    """Lint a snippet, optionally with a custom query object/methods."""
    def _lint(source: str, object_name: str = None, methods=None):
        config = QuerylintConfig()
        if object_name or methods:
            config.rule = RuleConfig().with_overrides(object_name, methods)
        return lint_source(source, "snippet.js", config)
    return _lint


@pytest.fixture
def project_dir(tmp_path):
    """A throwaway project directory with a src/ folder."""
    (tmp_path / "src").mkdir()
    return tmp_path


@pytest.fixture
def js_parse():
    return parse


@pytest.fixture
def identifier_at():
    return last_identifier

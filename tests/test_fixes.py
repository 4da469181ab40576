# tests/test_fixes.py
"""
Tests for fix generation, fix application and inline suppression.
"""

from querylint import (
    DIAGNOSTIC_MESSAGE, FIX_DESCRIPTION, Diagnostic, Fix, Location, Position,
    apply_fixes, filter_findings, fix_source, generate_fix, lint_source,
)
from querylint_config import QuerylintConfig


def make_diagnostic(start, end, replacement):
    location = Location(Position(1, start + 1), Position(1, end + 1))
    return Diagnostic(
        message=DIAGNOSTIC_MESSAGE,
        location=location,
        fixes=[Fix(FIX_DESCRIPTION, replacement, location, (start, end))],
    )


class TestGenerateFix:

    def test_rewrites_literal_comparand(self):
        text = '\'x.id.toString() === "a"\''
        assert generate_fix(text, 3, 24) == 'id === new Guid("a")'

    def test_only_the_given_range_is_rewritten(self):
        text = 'id.toString() == "a" id.toString() == "b"'
        assert generate_fix(text, 0, 20) == 'id == new Guid("a")'

    def test_no_fix_without_comparand(self):
        assert generate_fix('id.toString() === "', 0, 19) is None

    def test_no_fix_for_placeholder_comparand_in_template(self):
        assert generate_fix('id.toString() === "${text}"', 0, 27, template=True) is None

    def test_placeholder_text_in_plain_string_is_fixed(self):
        assert generate_fix('id.toString() === "${text}"', 0, 27) == 'id === new Guid("${text}")'

    def test_dollar_without_brace_is_literal_text(self):
        assert generate_fix('id.toString() === "$a"', 0, 22) == 'id === new Guid("$a")'


class TestApplyFixes:

    def test_applies_in_offset_order(self):
        source = "0123456789"
        diagnostics = [make_diagnostic(6, 8, "B"), make_diagnostic(1, 3, "A")]
        assert apply_fixes(source, diagnostics) == ("0A345B89", 2)

    def test_overlapping_fix_is_skipped(self):
        source = "0123456789"
        diagnostics = [make_diagnostic(1, 5, "A"), make_diagnostic(3, 7, "B")]
        assert apply_fixes(source, diagnostics) == ("0A56789", 1)

    def test_diagnostics_without_fixes_are_ignored(self):
        source = "abc"
        no_fix = Diagnostic(message=DIAGNOSTIC_MESSAGE,
                            location=Location(Position(1, 1), Position(1, 2)))
        assert apply_fixes(source, [no_fix]) == ("abc", 0)


class TestFixSource:

    def test_fix_all_and_report_leftovers(self):
        source = "\n".join([
            'linq.execute(\'x.id.toString() === "a"\');',
            'linq.execute(`y.id.toString() === "${v}"`);',
        ])
        fixed, remaining = fix_source(source)
        assert fixed == "\n".join([
            'linq.execute(\'x.id === new Guid("a")\');',
            'linq.execute(`y.id.toString() === "${v}"`);',
        ])
        assert len(remaining) == 1
        assert remaining[0].line == 2
        assert remaining[0].fixes == []

    def test_clean_source_is_unchanged(self):
        source = 'linq.execute("select 1");'
        assert fix_source(source) == (source, [])

    def test_suppressed_line_is_not_fixed(self):
        source = 'linq.execute(\'x.id.toString() === "a"\'); // nolint'
        assert fix_source(source) == (source, [])


class TestSuppression:

    def test_line_comment(self):
        findings = lint_source('linq.execute(\'x.id.toString() === "a"\'); // nolint')
        assert len(findings) == 1
        assert filter_findings(findings) == []

    def test_block_comment_and_ignore_marker(self):
        source = "\n".join([
            'linq.execute(\'x.id.toString() === "a"\'); /* nolint */',
            'linq.execute(\'x.id.toString() === "b"\'); // querylint:ignore',
            'linq.execute(\'x.id.toString() === "c"\');',
        ])
        remaining = filter_findings(lint_source(source))
        assert [f.line for f in remaining] == [3]

    def test_custom_keyword(self):
        config = QuerylintConfig(suppression_keyword="guid-ok")
        source = 'linq.execute(\'x.id.toString() === "a"\'); // guid-ok'
        findings = lint_source(source, config=config)
        assert filter_findings(findings, config.suppression_keyword) == []
        assert len(filter_findings(findings)) == 1

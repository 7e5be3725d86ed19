"""Tests for generated-code well-formedness checks."""

import pytest

from testmedic.healing.syntax import check_syntax, language_for, scan_delimiters

from conftest import FIXED_SPEC


class TestLanguageFor:
    @pytest.mark.parametrize(
        "path,language",
        [("a.spec.ts", "typescript"), ("a.spec.js", "javascript"), ("test_a.py", "python"), ("a.tsx", "typescript")],
    )
    def test_suffixes(self, path, language):
        assert language_for(path) == language


class TestScanDelimiters:
    def test_balanced(self):
        assert scan_delimiters(FIXED_SPEC) == []

    def test_unclosed_brace(self):
        issues = scan_delimiters("test('a', async () => {\n  await x();\n")
        assert issues == ["line 1: '(' is never closed", "line 1: '{' is never closed"]

    def test_mismatched(self):
        assert scan_delimiters("foo(]") == ["line 1: ']' does not close '(' from line 1"]

    def test_brackets_inside_strings_and_comments(self):
        code = "const a = '(';\n// ) stray\n/* ] */\nconst b = \"{\";\n"
        assert scan_delimiters(code) == []

    def test_template_literal_interpolation(self):
        assert scan_delimiters("const s = `a ${fn({ x: 1 })} b (`;\n") == []

    def test_unterminated_string(self):
        assert scan_delimiters("const a = 'oops;\n") == ["line 1: unterminated string literal"]

    def test_unterminated_comment(self):
        assert scan_delimiters("/* never ends") == ["line 1: unterminated block comment"]

    @pytest.mark.parametrize(
        "code",
        [
            "await expect(page.getByText(/don't miss/i)).toBeVisible();\n",
            "const opener = /[(]/;\n",
            "const re = /a\\/b[/\\]]\"/g;\n",
            "function f() { return /}/.test(s); }\n",
        ],
    )
    def test_regex_literals(self, code):
        assert scan_delimiters(code) == []

    def test_division_is_not_a_regex(self):
        assert scan_delimiters("const half = (total / 2) / count;\nconst q = a[i] / b;\n") == []

    def test_unterminated_regex(self):
        assert scan_delimiters("const re = /abc\n") == ["line 1: unterminated regex literal"]


class TestCheckSyntax:
    def test_valid_typescript(self):
        assert check_syntax(FIXED_SPEC, "login.spec.ts") == []

    def test_empty(self):
        assert check_syntax("   \n", "login.spec.ts") == ["generated code is empty"]

    def test_markdown_contamination(self):
        code = "## Fixed test\n" + FIXED_SPEC + "\n**Note** the wait\n"
        issues = check_syntax(code, "login.spec.ts")
        assert "markdown heading in code" in issues
        assert "markdown emphasis in code" in issues

    def test_regex_with_quote_in_spec(self):
        code = FIXED_SPEC.replace("page.getByText('Welcome')", "page.getByText(/don't miss/i)")
        assert "/don't miss/i" in code
        assert check_syntax(code, "a.spec.ts") == []

    def test_missing_test_declaration(self):
        assert check_syntax("const a = 1;\n", "login.spec.ts") == ["no test declaration found"]

    def test_truncated_response(self):
        truncated = FIXED_SPEC[: FIXED_SPEC.index("await expect")]
        assert any("never closed" in issue for issue in check_syntax(truncated, "login.spec.ts"))

    def test_valid_python(self):
        assert check_syntax("def test_a(page):\n    assert page\n", "test_login.py") == []

    def test_python_syntax_error(self):
        issues = check_syntax("def test_a(:\n", "test_login.py")
        assert issues and issues[0].startswith("line 1")

    def test_python_without_test_function(self):
        assert check_syntax("x = 1\n", "test_login.py") == ["no test function found"]

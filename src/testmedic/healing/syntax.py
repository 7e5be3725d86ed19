"""Well-formedness checks for generated test code.

Python sources are parsed with ``ast``. TypeScript and JavaScript get a
delimiter-balance scan that understands strings, template literals, regex
literals and comments, plus checks for markdown that leaked out of the
response.
"""

from __future__ import annotations

import ast
import re
from pathlib import Path

PYTHON_SUFFIXES = frozenset({".py"})
SCRIPT_SUFFIXES = frozenset({".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts"})

_PAIRS = {")": "(", "]": "[", "}": "{"}
_MARKDOWN_HEADING = re.compile(r"^\s{0,3}#{1,6}\s+\S", re.MULTILINE)
_MARKDOWN_BOLD = re.compile(r"\*\*[A-Za-z][^*\n]*\*\*")
_SCRIPT_TEST_DECLARATION = re.compile(r"\b(?:test|it)(?:\.\w+)*\s*\(")
_PYTHON_TEST_DECLARATION = re.compile(r"^\s*(?:async\s+)?def\s+test_\w*\s*\(", re.MULTILINE)

# A slash after one of these starts a regex literal rather than a division
_REGEX_PRECEDERS = frozenset("(,=:[!&|?{};")
_REGEX_KEYWORDS = frozenset({
    "return", "typeof", "case", "do", "else", "in", "of", "new", "delete", "void", "throw", "yield", "await",
})


def language_for(file_path: str | Path) -> str:
    suffix = Path(file_path).suffix.lower()
    if suffix in PYTHON_SUFFIXES:
        return "python"
    if suffix in {".js", ".jsx", ".mjs", ".cjs"}:
        return "javascript"
    return "typescript"


def _skip_string(code: str, i: int, quote: str) -> tuple[int, bool]:
    """Index just past the closing quote, and whether the string was closed."""
    n = len(code)
    i += 1
    while i < n:
        ch = code[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1, True
        if ch == "\n":
            return i, False
        i += 1
    return i, False


def _starts_regex(code: str, i: int) -> bool:
    """True when the slash at i begins a regex literal."""
    j = i - 1
    while j >= 0 and code[j] in " \t\r\n":
        j -= 1
    if j < 0 or code[j] in _REGEX_PRECEDERS:
        return True
    end = j + 1
    while j >= 0 and (code[j].isalnum() or code[j] in "_$"):
        j -= 1
    return code[j + 1:end] in _REGEX_KEYWORDS


def _skip_regex(code: str, i: int) -> tuple[int, bool]:
    """Index just past the regex literal and its flags, and whether it was closed."""
    n = len(code)
    in_class = False
    i += 1
    while i < n:
        ch = code[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "\n":
            return i, False
        if in_class:
            if ch == "]":
                in_class = False
        elif ch == "[":
            in_class = True
        elif ch == "/":
            i += 1
            while i < n and code[i].isalpha():
                i += 1
            return i, True
        i += 1
    return i, False


def scan_delimiters(code: str) -> list[str]:
    """Problems with bracket, string and comment balance (empty if balanced)."""
    stack: list[tuple[str, int]] = []
    line = 1
    i, n = 0, len(code)

    while i < n:
        ch = code[i]
        nxt = code[i + 1] if i + 1 < n else ""

        if stack and stack[-1][0] == "`":
            # Inside template literal text
            if ch == "\\":
                i += 2
                continue
            if ch == "`":
                stack.pop()
            elif ch == "$" and nxt == "{":
                stack.append(("${", line))
                i += 2
                continue
            elif ch == "\n":
                line += 1
            i += 1
            continue

        if ch == "\n":
            line += 1
            i += 1
        elif ch == "/" and nxt == "/":
            end = code.find("\n", i)
            i = n if end == -1 else end
        elif ch == "/" and nxt == "*":
            end = code.find("*/", i + 2)
            if end == -1:
                return [f"line {line}: unterminated block comment"]
            line += code.count("\n", i, end)
            i = end + 2
        elif ch == "/" and _starts_regex(code, i):
            i, closed = _skip_regex(code, i)
            if not closed:
                return [f"line {line}: unterminated regex literal"]
        elif ch in "'\"":
            i, closed = _skip_string(code, i, ch)
            if not closed:
                return [f"line {line}: unterminated string literal"]
        elif ch == "\\":
            # Stray escape outside any literal
            i += 2
        elif ch == "`":
            stack.append(("`", line))
            i += 1
        elif ch in "([{":
            stack.append((ch, line))
            i += 1
        elif ch in ")]}":
            expected = _PAIRS[ch]
            if not stack:
                return [f"line {line}: unexpected '{ch}'"]
            opener, opened_at = stack[-1]
            if opener == expected or (ch == "}" and opener == "${"):
                stack.pop()
            else:
                return [f"line {line}: '{ch}' does not close '{opener}' from line {opened_at}"]
            i += 1
        else:
            i += 1

    return [f"line {opened_at}: '{opener}' is never closed" for opener, opened_at in stack]


def markdown_contamination(code: str) -> list[str]:
    issues = []
    if _MARKDOWN_HEADING.search(code):
        issues.append("markdown heading in code")
    if _MARKDOWN_BOLD.search(code):
        issues.append("markdown emphasis in code")
    return issues


def check_syntax(code: str, file_path: str | Path) -> list[str]:
    """All well-formedness problems for code destined for file_path."""
    if not code or not code.strip():
        return ["generated code is empty"]

    if language_for(file_path) == "python":
        try:
            ast.parse(code, filename=str(file_path))
        except SyntaxError as e:
            return [f"line {e.lineno}: {e.msg}"]
        if not _PYTHON_TEST_DECLARATION.search(code):
            return ["no test function found"]
        return []

    issues = markdown_contamination(code)
    issues += scan_delimiters(code)
    if not _SCRIPT_TEST_DECLARATION.search(code):
        issues.append("no test declaration found")
    return issues

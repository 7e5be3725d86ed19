"""
Outbound text sanitization and generated-code screening.

Nothing derived from a failing test leaves the process without passing
through this module. Every function is total: malformed input yields a
best-effort result, never an exception.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from testmedic.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_PROMPT_LENGTH = 5000
DEFAULT_MAX_ERROR_LENGTH = 1000
DEFAULT_MAX_CODE_SIZE = 50000

# Whole-phrase patterns; "exact assertion" must not read as "act as"
INJECTION_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bignore\s+(?:all\s+)?previous\s+instructions\b",
        r"\bsystem\s+prompt\b",
        r"\bforget\s+about\b",
        r"\bact\s+as\b",
        r"\bpretend\s+to\s+be\b",
        r"\binstead\s+of\b",
        r"\bas\s+an\s+evil\b",
        r"\bbypass\s+security\b",
        r"\bdisable\s+safety\b",
        r"\bwithout\s+restrictions\b",
        r"\bdo\s+not\s+follow\b",
    )
]

# name -> signature; names are what gets logged and audited
DANGEROUS_SIGNATURES: dict[str, re.Pattern] = {
    "fs-delete": re.compile(r"\bfs(?:\.promises)?\.(?:rm|rmSync|unlink|unlinkSync|rmdir|rmdirSync)\b"),
    "child-process": re.compile(r"\bchild_process\b|\b(?:execSync|execFile|execFileSync|spawn|spawnSync)\s*\("),
    "dynamic-import": re.compile(r"\brequire\s*\(|\bimport\s*\("),
    "eval": re.compile(r"\beval\s*\("),
    "function-constructor": re.compile(r"\bnew\s+Function\b"),
    "process-exit": re.compile(r"\bprocess\.exit\b"),
    "os-delete": re.compile(r"\bos\.(?:remove|unlink|rmdir|removedirs)\s*\("),
    "shutil-rmtree": re.compile(r"\bshutil\.rmtree\b"),
    "subprocess": re.compile(r"\bsubprocess\.\w+\s*\("),
    "os-command": re.compile(r"\bos\.(?:system|popen|exec\w*)\s*\("),
    "exec": re.compile(r"(?<![\w.])exec\s*\("),
    "dunder-import": re.compile(r"\b__import__\s*\("),
    "sys-exit": re.compile(r"\bsys\.exit\s*\("),
}

_WINDOWS_PATH = re.compile(r"[A-Za-z]:\\[^\s]*")
_HOME_PATH = re.compile(r"/home/[^/\s]*")
_USERS_PATH = re.compile(r"/Users/[^/\s]*")
_TEMP_PATH = re.compile(r"/tmp/[^/\s]*")
_EMAIL = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_IPV4 = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")
_REMOTE_URL = re.compile(r"https?://(?!localhost)[^\s]+", re.IGNORECASE)
_LONG_TOKEN = re.compile(r"\b[a-zA-Z0-9_]{40,}\b")
_LOCALHOST_PORT = re.compile(r"localhost:\d{4,5}")

# Every token the sanitizers can introduce
PLACEHOLDER_TOKENS = (
    "[LOCAL_PATH]",
    "[HOME_PATH]",
    "[USER_PATH]",
    "[EMAIL]",
    "[IP_ADDRESS]",
    "[URL]",
    "[FILE_PATH]",
    "[TEMP_PATH]",
    "[ROOT]/",
    "[HOME]/",
    "[SECRET]",
    "[IP]",
    "localhost:[PORT]",
)


@dataclass
class CodeValidation:
    """Result of screening generated code."""

    valid: bool
    issues: list[str] = field(default_factory=list)


@dataclass
class CodeSizeCheck:
    """Result of the outbound size ceiling check."""

    valid: bool
    error: str | None = None
    truncated: str | None = None


def _as_text(value) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def sanitize_for_prompt(text: str, max_length: int = DEFAULT_MAX_PROMPT_LENGTH, escape_quotes: bool = True) -> str:
    """
    Sanitize text for inclusion in a prompt.

    Truncates to max_length, neutralizes code fences (and quotes unless
    escape_quotes is False), then masks local paths, emails, IPv4 addresses
    and non-localhost URLs.
    """
    text = _as_text(text)
    if not text:
        return ""

    sanitized = text[:max_length]
    sanitized = sanitized.replace("```", "\\`\\`\\`")
    if escape_quotes:
        sanitized = sanitized.replace('"', '\\"').replace("'", "\\'")

    sanitized = _WINDOWS_PATH.sub("[LOCAL_PATH]", sanitized)
    sanitized = _HOME_PATH.sub("[HOME_PATH]", sanitized)
    sanitized = _USERS_PATH.sub("[USER_PATH]", sanitized)
    sanitized = _EMAIL.sub("[EMAIL]", sanitized)
    sanitized = _IPV4.sub("[IP_ADDRESS]", sanitized)
    sanitized = _REMOTE_URL.sub("[URL]", sanitized)

    if len(text) > max_length:
        sanitized += f"\n[... {len(text) - max_length} characters truncated for token limit]"
    return sanitized


def sanitize_error_message(error: str, max_length: int = DEFAULT_MAX_ERROR_LENGTH) -> str:
    """
    Sanitize an error message for outbound use.

    Same masking family as sanitize_for_prompt, plus credential-like tokens
    (40+ word characters) and localhost ports. Code fences are neutralized
    so the message cannot close the block it is quoted in.
    """
    error = _as_text(error)
    if not error:
        return "Unknown error"

    sanitized = error[:max_length]
    sanitized = sanitized.replace("```", "\\`\\`\\`")
    sanitized = _WINDOWS_PATH.sub("[FILE_PATH]", sanitized)
    sanitized = _HOME_PATH.sub("[FILE_PATH]", sanitized)
    sanitized = _USERS_PATH.sub("[FILE_PATH]", sanitized)
    sanitized = _TEMP_PATH.sub("[TEMP_PATH]", sanitized)
    sanitized = sanitized.replace("/root/", "[ROOT]/").replace("~/", "[HOME]/")
    sanitized = _EMAIL.sub("[EMAIL]", sanitized)
    sanitized = _LONG_TOKEN.sub("[SECRET]", sanitized)
    sanitized = _IPV4.sub("[IP]", sanitized)
    sanitized = _LOCALHOST_PORT.sub("localhost:[PORT]", sanitized)
    return sanitized


def sanitize_context(text: str, max_length: int = DEFAULT_MAX_PROMPT_LENGTH) -> str:
    """Prompt sanitization for error-derived prose, with the credential and local-address masks added."""
    sanitized = sanitize_for_prompt(text, max_length, escape_quotes=False)
    sanitized = _TEMP_PATH.sub("[TEMP_PATH]", sanitized)
    sanitized = sanitized.replace("/root/", "[ROOT]/").replace("~/", "[HOME]/")
    sanitized = _LONG_TOKEN.sub("[SECRET]", sanitized)
    return _LOCALHOST_PORT.sub("localhost:[PORT]", sanitized)


def detect_prompt_injection(text: str) -> bool:
    """Advisory check: True when any injection phrase appears in the text."""
    text = _as_text(text)
    if not text:
        return False
    return any(p.search(text) for p in INJECTION_PATTERNS)


def validate_generated_code(code: str) -> CodeValidation:
    """Screen generated code for dangerous operations, listing every match."""
    code = _as_text(code)
    issues = [name for name, pattern in DANGEROUS_SIGNATURES.items() if pattern.search(code)]
    if issues:
        logger.warning("dangerous_code_detected", signatures=issues)
    return CodeValidation(valid=not issues, issues=issues)


def validate_test_code_size(code: str, max_length: int = DEFAULT_MAX_CODE_SIZE) -> CodeSizeCheck:
    """Enforce the outbound code ceiling, offering a truncated fallback."""
    code = _as_text(code)
    if not code:
        return CodeSizeCheck(valid=False, error="Test code is empty")
    if len(code) > max_length:
        return CodeSizeCheck(
            valid=False,
            error=f"Test code exceeds maximum length ({len(code)} > {max_length} chars)",
            truncated=code[:max_length],
        )
    return CodeSizeCheck(valid=True)


def find_leaked_placeholders(generated: str, original: str) -> list[str]:
    """Placeholder tokens present in generated code but absent from the original."""
    generated = _as_text(generated)
    original = _as_text(original)
    return [t for t in PLACEHOLDER_TOKENS if t in generated and t not in original]


class SecurityValidator:
    """Sanitization bound to configured limits."""

    def __init__(
        self,
        max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH,
        max_error_length: int = DEFAULT_MAX_ERROR_LENGTH,
        max_code_size: int = DEFAULT_MAX_CODE_SIZE,
    ) -> None:
        self.max_prompt_length = max_prompt_length
        self.max_error_length = max_error_length
        self.max_code_size = max_code_size

    def sanitize_for_prompt(self, text: str, escape_quotes: bool = True) -> str:
        return sanitize_for_prompt(text, self.max_prompt_length, escape_quotes=escape_quotes)

    def sanitize_error_message(self, error: str) -> str:
        return sanitize_error_message(error, self.max_error_length)

    def sanitize_context(self, text: str) -> str:
        return sanitize_context(text, self.max_prompt_length)

    def sanitize_source(self, code: str) -> str:
        """Source code keeps its quotes; only fences and sensitive values are touched."""
        return sanitize_for_prompt(code, self.max_code_size, escape_quotes=False)

    def validate_test_code_size(self, code: str) -> CodeSizeCheck:
        return validate_test_code_size(code, self.max_code_size)

    detect_prompt_injection = staticmethod(detect_prompt_injection)
    validate_generated_code = staticmethod(validate_generated_code)
    find_leaked_placeholders = staticmethod(find_leaked_placeholders)

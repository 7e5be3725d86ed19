"""Playwright failure classification using an ordered detector table.

Detectors run top to bottom and the first match wins. A timeout message
frequently also mentions "expected" or a locator, so timeouts are checked
before strict-mode, assertion and not-found errors.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from testmedic.classification.models import ClassifiedError, ErrorCategory, ErrorKind, Severity


def _compile(patterns: list[str]) -> list[re.Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


# Detection patterns, matched against the lowercased message + stack
TIMEOUT_PATTERNS = _compile([
    r"timeout\s+.*\s+(waiting|exceeded)",
    r"page\.goto:.*timeout",
    r"waitforselector.*timeout",
    r"waiting for.*timeout",
    r"timed out",
    r"timeout\s+\d+m?s\s+exceeded",
    r"waiting for locator.*to be visible",
    r"expect.*timeout.*\d+m?s",
])

STRICT_PATTERNS = _compile([
    r"locator.*resolved\s+to\s+(\d+)\s+elements",
    r"strict\s+mode.*violation",
    r"expected\s+1\s+element.*got\s+\d+",
    r"multiple\s+elements\s+match",
    r"resolved to \d+ elements.*call .first",
    r"locator\s+is\s+strict",
])

ASSERTION_PATTERNS = _compile([
    r"expect\s*\(.*\)\.\w+",
    r"assertion\s+.*failed",
    r"expected.*received",
    r"tobe(visible|enabled|checked|disabled|focused)",
    r"assertion error",
    r"expect\(locator\)\.(tohave|tobe|tocontain)",
])

NOT_FOUND_PATTERNS = _compile([
    r"no\s+element\s+matches\s+selector",
    r"unable to find",
    r"queryselector.*could not find",
    r"element.*not found",
    r"target closed",
    r"net::err_name_not_resolved",
    r"enotfound",
])

SELECTOR_PATTERNS = _compile([
    r"is not a valid selector",
    r"invalid selector",
    r"unknown engine",
    r"unexpected token.*(?:selector|while parsing)",
    r"selector.*(?:syntax|parse)\s+error",
])

NAVIGATION_PATTERNS = _compile([
    r"page\.goto:",
    r"navigation\s+(?:failed|interrupted|to .* was interrupted)",
    r"net::err_aborted",
    r"err_too_many_redirects",
    r"frame was detached",
])

NETWORK_PATTERNS = _compile([
    r"net::err_",
    r"econnrefused",
    r"econnreset",
    r"socket hang up",
    r"fetch failed",
    r"getaddrinfo",
    r"certificate",
])

# Failures no edit to the test file can fix
INFRASTRUCTURE_PATTERNS = _compile([
    r"connection refused",
    r"econnrefused",
    r"err_connection_refused",
    r"net::err_name_not_resolved",
    r"enotfound",
    r"getaddrinfo",
    r"err_cert_",
    r"certificate (?:has expired|verify failed|is not trusted)",
    r"self[- ]signed certificate",
    r"eaddrinuse",
    r"address already in use",
    r"server (?:is )?not running",
    r"webserver.*(?:exited|failed to start)",
    r"network error",
    r"infrastructure",
    r"configuration error",
    r"env setup",
    r"not installed",
])

SEVERITY_SCORES: dict[ErrorKind, int] = {
    ErrorKind.STRICT_MATCH_VIOLATION: 95,
    ErrorKind.NOT_FOUND: 85,
    ErrorKind.SELECTOR: 85,
    ErrorKind.TIMEOUT: 80,
    ErrorKind.NETWORK: 75,
    ErrorKind.NAVIGATION: 70,
    ErrorKind.ASSERTION: 60,
    ErrorKind.UNKNOWN: 40,
}

PROMPT_HINTS: dict[ErrorKind, str] = {
    ErrorKind.STRICT_MATCH_VIOLATION: (
        "The locator matched multiple elements in strict mode. Refine the selector so it matches "
        "exactly one element, or target one explicitly with .first() or .nth(index)."
    ),
    ErrorKind.TIMEOUT: (
        "The test timed out waiting for an element. The selector may be wrong or the element may "
        "still be loading. Consider waitForLoadState(), waiting for visibility, or a longer timeout."
    ),
    ErrorKind.NOT_FOUND: (
        "The selector does not match any element in the DOM, which has probably changed. Prefer "
        "resilient role- or text-based locators such as getByRole and getByText."
    ),
    ErrorKind.ASSERTION: (
        "An expect() assertion failed. Check that the expected condition is right and that the "
        "element is in that state, waiting before the assertion where needed."
    ),
    ErrorKind.SELECTOR: (
        "The selector is syntactically invalid. Rewrite it so Playwright can parse it and it "
        "matches the current DOM."
    ),
    ErrorKind.NAVIGATION: (
        "Navigation to the target URL failed. Check the URL, redirects and whether the page is "
        "reachable before interacting with it."
    ),
    ErrorKind.NETWORK: (
        "A network request failed. Wait for the relevant responses explicitly and avoid depending "
        "on requests the page does not make."
    ),
    ErrorKind.UNKNOWN: (
        "The error could not be classified. Read the full error message and fix the underlying "
        "cause in the test."
    ),
}

UNKNOWN_HINT = "Analyze error message and manually investigate test failure"
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_ELEMENT_COUNT = 2

_TIMEOUT_VALUE = re.compile(r"(\d+)\s*ms\b", re.IGNORECASE)
_WAITING_FOR = re.compile(r"waiting for[:\s]+([^\n.]+)", re.IGNORECASE)
_ELEMENT_COUNT = re.compile(r"(\d+)\s+elements?", re.IGNORECASE)
_LOCATOR_CALL = re.compile(r"locator\s*\(\s*[`'\"]([^`'\"]+)[`'\"]\s*\)", re.IGNORECASE)
_EXPECT_CALL = re.compile(r"expect\s*\(([^)]+)\)\s*\.\s*(\w+)")
_RECEIVED = re.compile(r"received[:\s]+([^\n]+)", re.IGNORECASE)
_SELECTOR_MENTION = re.compile(r"(?:locator|selector)[:\s]+[`'\"]?([^`'\"\n]+)[`'\"]?", re.IGNORECASE)
_URL = re.compile(r"(https?://[^\s'\"]+)", re.IGNORECASE)


def _matches_any(patterns: list[re.Pattern], text: str) -> bool:
    return any(p.search(text) for p in patterns)


def _build_timeout(message: str) -> ClassifiedError:
    value = _TIMEOUT_VALUE.search(message)
    waiting = _WAITING_FOR.search(message)
    timeout_ms = int(value.group(1)) if value else DEFAULT_TIMEOUT_MS
    waiting_for = waiting.group(1).strip() if waiting else "element"
    return ClassifiedError(
        kind=ErrorKind.TIMEOUT,
        category=ErrorCategory.TIMING,
        severity=Severity.HIGH,
        message=f"Timeout after {timeout_ms}ms while waiting for: {waiting_for}",
        hint="Increase timeout, wait for element visibility, or check if selector is correct",
        context={"timeout_ms": timeout_ms, "selector": waiting_for},
    )


def _build_strict(message: str) -> ClassifiedError:
    count = _ELEMENT_COUNT.search(message)
    locator = _LOCATOR_CALL.search(message)
    element_count = int(count.group(1)) if count else DEFAULT_ELEMENT_COUNT
    selector = locator.group(1) if locator else "unknown selector"
    return ClassifiedError(
        kind=ErrorKind.STRICT_MATCH_VIOLATION,
        category=ErrorCategory.LOCATOR,
        severity=Severity.CRITICAL,
        message=f"Strict mode violation: {element_count} elements matched selector: {selector}",
        hint=(
            "Use .locator().first() or .locator().nth(index) to pick one element, "
            "or refine the selector to match a single element"
        ),
        context={"element_count": element_count, "selector": selector},
    )


def _build_assertion(message: str) -> ClassifiedError:
    expect = _EXPECT_CALL.search(message)
    received = _RECEIVED.search(message)
    target = expect.group(1) if expect else "value"
    method = expect.group(2) if expect else "unknown"
    received_value = received.group(1).strip() if received else "unexpected value"
    return ClassifiedError(
        kind=ErrorKind.ASSERTION,
        category=ErrorCategory.VALIDATION,
        severity=Severity.MEDIUM,
        message=f"Assertion failed: expect({target}).{method}() - received: {received_value}",
        hint="Verify the expected condition matches actual state. Add wait before assertion if element is still loading.",
        context={"assertion": f"{method}({target})", "received": received_value},
    )


def _selector_from(message: str) -> str:
    match = _SELECTOR_MENTION.search(message)
    return match.group(1).strip() if match else "unknown selector"


def _build_not_found(message: str) -> ClassifiedError:
    selector = _selector_from(message)
    return ClassifiedError(
        kind=ErrorKind.NOT_FOUND,
        category=ErrorCategory.SELECTOR,
        severity=Severity.HIGH,
        message=f"Element selector not found in DOM: {selector}",
        hint="Update selector to match current DOM structure. Use text-based selectors (getByText, getByRole) for better resilience.",
        context={"selector": selector},
    )


def _build_selector(message: str) -> ClassifiedError:
    selector = _selector_from(message)
    return ClassifiedError(
        kind=ErrorKind.SELECTOR,
        category=ErrorCategory.SELECTOR,
        severity=Severity.HIGH,
        message=f"Invalid selector: {selector}",
        hint="Rewrite the selector with valid syntax, or switch to getByRole/getByText locators.",
        context={"selector": selector},
    )


def _build_navigation(message: str) -> ClassifiedError:
    url = _URL.search(message)
    target = url.group(1) if url else "unknown url"
    return ClassifiedError(
        kind=ErrorKind.NAVIGATION,
        category=ErrorCategory.NAVIGATION,
        severity=Severity.HIGH,
        message=f"Navigation failed: {target}",
        hint="Check the target URL and wait for the navigation to settle with waitForURL or waitForLoadState.",
        context={"url": target},
    )


def _build_network(message: str) -> ClassifiedError:
    url = _URL.search(message)
    target = url.group(1) if url else "unknown url"
    return ClassifiedError(
        kind=ErrorKind.NETWORK,
        category=ErrorCategory.NETWORK,
        severity=Severity.HIGH,
        message=f"Network request failed: {target}",
        hint="Wait for the relevant response explicitly and make sure the requested endpoint is reachable.",
        context={"url": target},
    )


@dataclass(frozen=True)
class Detector:
    """One row of the classification table."""

    kind: ErrorKind
    predicate: Callable[[str], bool]
    build: Callable[[str], ClassifiedError]


def _detector(kind: ErrorKind, patterns: list[re.Pattern], build: Callable[[str], ClassifiedError]) -> Detector:
    return Detector(kind=kind, predicate=lambda text: _matches_any(patterns, text), build=build)


DETECTORS: tuple[Detector, ...] = (
    _detector(ErrorKind.TIMEOUT, TIMEOUT_PATTERNS, _build_timeout),
    _detector(ErrorKind.STRICT_MATCH_VIOLATION, STRICT_PATTERNS, _build_strict),
    _detector(ErrorKind.ASSERTION, ASSERTION_PATTERNS, _build_assertion),
    _detector(ErrorKind.NOT_FOUND, NOT_FOUND_PATTERNS, _build_not_found),
    _detector(ErrorKind.SELECTOR, SELECTOR_PATTERNS, _build_selector),
    _detector(ErrorKind.NAVIGATION, NAVIGATION_PATTERNS, _build_navigation),
    _detector(ErrorKind.NETWORK, NETWORK_PATTERNS, _build_network),
)


class ErrorClassifier:
    """Maps a raw Playwright error (+ optional stack) to a ClassifiedError.

    Pure and deterministic. Never raises: anything unmatched becomes an
    ``unknown`` error of medium severity.
    """

    def __init__(self, detectors: tuple[Detector, ...] = DETECTORS) -> None:
        self._detectors = detectors

    def classify(self, message: str | None, stack: str | None = None) -> ClassifiedError:
        message = message if isinstance(message, str) else ("" if message is None else str(message))
        stack = stack if isinstance(stack, str) else ""
        full_text = f"{message} {stack}".lower()

        for detector in self._detectors:
            if detector.predicate(full_text):
                return detector.build(message)

        return ClassifiedError(
            kind=ErrorKind.UNKNOWN,
            category=ErrorCategory.UNKNOWN,
            severity=Severity.MEDIUM,
            message=message[:200],
            hint=UNKNOWN_HINT,
        )

    @staticmethod
    def severity_score(kind: ErrorKind) -> int:
        """Priority score 0-100 for a kind of failure."""
        return SEVERITY_SCORES.get(kind, SEVERITY_SCORES[ErrorKind.UNKNOWN])

    @staticmethod
    def prompt_hint(classified: ClassifiedError) -> str:
        """Kind-specific guidance added to the outbound prompt."""
        return PROMPT_HINTS.get(classified.kind, PROMPT_HINTS[ErrorKind.UNKNOWN])

    @staticmethod
    def is_infrastructure_failure(message: str | None, stack: str | None = None) -> bool:
        """True when the failure comes from the environment, not the test code."""
        text = f"{message or ''} {stack or ''}".lower()
        return _matches_any(INFRASTRUCTURE_PATTERNS, text)

    @classmethod
    def build_ai_context(cls, classified: ClassifiedError) -> str:
        """Markdown block describing the diagnosis, embedded in the prompt."""
        details = "\n".join(
            f"- **{key}**: {value}" for key, value in classified.context.items() if value is not None
        )
        return "\n".join([
            "## Error Classification",
            f"- **Type**: {classified.kind.value}",
            f"- **Category**: {classified.category.value}",
            f"- **Severity**: {classified.severity.value} ({cls.severity_score(classified.kind)}/100)",
            f"- **Message**: {classified.message}",
            "",
            "## Analysis Details",
            details or "- none",
            "",
            "## Suggested Fix Approach",
            classified.hint,
            "",
            "## Hint",
            cls.prompt_hint(classified),
        ])

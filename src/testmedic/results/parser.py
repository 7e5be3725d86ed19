"""Playwright results document parsing.

Understands three document shapes:

* a flat JSON array of test entries,
* the reporter's nested ``suites -> specs -> tests -> results`` tree, where
  only the first result of each test counts (older reports list ``tests``
  directly on a suite),
* an object with a top-level ``tests`` array.
"""

from __future__ import annotations

import json
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from testmedic.classification.classifier import ErrorClassifier
from testmedic.classification.models import ErrorKind, Severity
from testmedic.results.models import FailureSummary, TestFailure, TestRecord
from testmedic.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

RESULTS_FILENAME = "results.json"
CONVENTIONAL_LOCATIONS = (
    ("test-results", RESULTS_FILENAME),
    (RESULTS_FILENAME,),
    ("playwright-report", RESULTS_FILENAME),
    (".playwright", RESULTS_FILENAME),
)
MAX_SEARCH_DEPTH = 3
SKIPPED_DIRS = frozenset({"node_modules"})
UNKNOWN_FILE = "unknown"

_ANSI = re.compile(r"\x1b\[[0-9;]*m")


def _clean(text: Any) -> str | None:
    if text is None:
        return None
    return _ANSI.sub("", str(text))


def _error_fields(entry: dict) -> tuple[str | None, str | None]:
    """Message and stack from ``error`` or, failing that, joined ``errors``."""
    error = entry.get("error")
    if isinstance(error, dict) and error.get("message"):
        return _clean(error.get("message")), _clean(error.get("stack"))
    if isinstance(error, str) and error:
        return _clean(error), None

    errors = entry.get("errors")
    if isinstance(errors, list):
        messages = [e.get("message") for e in errors if isinstance(e, dict) and e.get("message")]
        if messages:
            return _clean("\n".join(messages)), None
    return None, None


def _record_from_entry(entry: dict, file: str | None = None) -> TestRecord:
    message, stack = _error_fields(entry)
    return TestRecord(
        name=str(entry.get("name") or entry.get("title") or "unnamed test"),
        status=str(entry.get("status") or "unknown"),
        duration=float(entry.get("duration") or 0),
        error_message=message,
        error_stack=stack,
        file=entry.get("file") or file,
    )


class ResultsJsonParser:
    """Reads a prior run's results document and yields its failures."""

    def __init__(self, classifier: ErrorClassifier | None = None, base_dir: str | Path | None = None) -> None:
        self._classifier = classifier or ErrorClassifier()
        self._base_dir = Path(base_dir) if base_dir else Path.cwd()

    def parse(self, path: str | Path) -> list[TestFailure]:
        """Failed and timed-out tests from the document, classified, in document order."""
        path = Path(path)
        records, root_dir = self._load(path)
        failed = self.get_failed_tests(records)
        return self.analyze_failures(failed, root_dir=root_dir)

    def parse_results(self, path: str | Path) -> list[TestRecord]:
        """Every test entry in the document, any status."""
        records, _ = self._load(Path(path))
        return records

    def _load(self, path: Path) -> tuple[list[TestRecord], str | None]:
        if not path.is_file():
            logger.warning("results_file_not_found", path=str(path))
            return [], None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error("results_file_unreadable", path=str(path), error=str(e))
            return [], None

        if isinstance(data, list):
            return [_record_from_entry(e) for e in data if isinstance(e, dict)], None

        if not isinstance(data, dict):
            logger.warning("results_file_unrecognized", path=str(path), type=type(data).__name__)
            return [], None

        config = data.get("config")
        root_dir = config.get("rootDir") if isinstance(config, dict) else None

        if isinstance(data.get("suites"), list):
            return self._flatten_suites(data["suites"]), root_dir
        if isinstance(data.get("tests"), list):
            return [_record_from_entry(e) for e in data["tests"] if isinstance(e, dict)], root_dir

        logger.warning("results_file_unrecognized", path=str(path), keys=sorted(data.keys()))
        return [], root_dir

    def _flatten_suites(self, suites: list) -> list[TestRecord]:
        records: list[TestRecord] = []

        def flatten(suite: dict, inherited_file: str | None) -> None:
            suite_file = suite.get("file") or inherited_file

            for test in suite.get("tests") or []:
                if isinstance(test, dict):
                    records.append(_record_from_entry(test, suite_file))

            for spec in suite.get("specs") or []:
                if not isinstance(spec, dict):
                    continue
                spec_file = spec.get("file") or suite_file
                for test in spec.get("tests") or []:
                    results = test.get("results") if isinstance(test, dict) else None
                    if not results or not isinstance(results[0], dict):
                        continue
                    first = results[0]
                    message, stack = _error_fields(first)
                    records.append(
                        TestRecord(
                            name=str(spec.get("title") or "unnamed test"),
                            status=first.get("status") or ("passed" if spec.get("ok") else "failed"),
                            duration=float(first.get("duration") or 0),
                            error_message=message,
                            error_stack=stack,
                            file=spec_file,
                        )
                    )

            for child in suite.get("suites") or []:
                if isinstance(child, dict):
                    flatten(child, suite_file)

        for suite in suites:
            if isinstance(suite, dict):
                flatten(suite, None)
        return records

    @staticmethod
    def get_failed_tests(records: list[TestRecord]) -> list[TestRecord]:
        return [r for r in records if r.is_failed]

    def _resolve_file(self, file: str | None, root_dir: str | None) -> str:
        if not file:
            return UNKNOWN_FILE
        candidate = Path(file)
        if candidate.is_absolute():
            return str(candidate)
        base = Path(root_dir) if root_dir else self._base_dir
        return str(base / candidate)

    def analyze_failures(self, failed: list[TestRecord], root_dir: str | None = None) -> list[TestFailure]:
        """Turn failed records into classified TestFailures."""
        failures = []
        for record in failed:
            message = record.error_message or "Unknown error"
            failures.append(
                TestFailure(
                    test_name=record.name,
                    file_path=self._resolve_file(record.file, root_dir),
                    error_message=message,
                    error_stack=record.error_stack,
                    classified=self._classifier.classify(message, record.error_stack),
                )
            )
        return failures

    @staticmethod
    def generate_summary(failures: list[TestFailure]) -> FailureSummary:
        """Counts by classified kind and severity."""
        by_kind = {kind.value: 0 for kind in ErrorKind}
        by_severity = {severity.value: 0 for severity in Severity}
        for failure in failures:
            if failure.classified is None:
                continue
            by_kind[failure.classified.kind.value] += 1
            by_severity[failure.classified.severity.value] += 1
        return FailureSummary(
            total=len(failures),
            by_kind=by_kind,
            by_severity=by_severity,
            critical_count=by_severity[Severity.CRITICAL.value],
        )

    def find_results_file(self, base_dir: str | Path | None = None) -> Path | None:
        """Conventional locations first, then a search at most three levels deep."""
        base = Path(base_dir) if base_dir else self._base_dir
        for parts in CONVENTIONAL_LOCATIONS:
            candidate = base.joinpath(*parts)
            if candidate.is_file():
                return candidate
        return self._search(base, 0)

    def _search(self, directory: Path, depth: int) -> Path | None:
        if depth > MAX_SEARCH_DEPTH:
            return None
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError:
            return None

        for entry in entries:
            if entry.name == RESULTS_FILENAME and entry.is_file():
                return Path(entry.path)
        for entry in entries:
            if entry.is_dir(follow_symlinks=False) and not entry.name.startswith(".") and entry.name not in SKIPPED_DIRS:
                found = self._search(Path(entry.path), depth + 1)
                if found:
                    return found
        return None

    def generate_detailed_report(self, failures: list[TestFailure]) -> str:
        """Plain-text failure analysis report."""
        summary = self.generate_summary(failures)
        rule = "=" * 64
        lines = [
            rule,
            "TEST FAILURE ANALYSIS REPORT",
            rule,
            f"Total Failed Tests: {summary.total}",
        ]
        lines += [f"  - {kind}: {count}" for kind, count in summary.by_kind.items() if count]
        lines.append("Severity Distribution:")
        lines += [f"  - {sev.upper()}: {count}" for sev, count in summary.by_severity.items()]
        lines.append(rule)

        for index, failure in enumerate(failures, start=1):
            classified = failure.classified
            lines += ["", f"[{index}] {failure.test_name}", "-" * 64, f"Test File: {failure.file_path}"]
            if classified:
                lines += [
                    f"Error Type: {classified.kind.value} [{classified.severity.value.upper()}]",
                    f"Category: {classified.category.value}",
                    f"Severity Score: {ErrorClassifier.severity_score(classified.kind)}/100",
                ]
            lines += ["", "Error Message:", failure.error_message]
            if failure.error_stack:
                lines += ["", "Stack Trace:", failure.error_stack]
            if classified:
                lines += ["", "Analysis:", classified.message, "", "Suggested Fix:", classified.hint]

        lines += ["", rule]
        return "\n".join(lines) + "\n"

    def export_as_json(self, failures: list[TestFailure]) -> str:
        """Failures and their summary as a JSON document."""
        return json.dumps(
            {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "total_failures": len(failures),
                "summary": self.generate_summary(failures).to_dict(),
                "failures": [f.to_dict() for f in failures],
            },
            indent=2,
        )

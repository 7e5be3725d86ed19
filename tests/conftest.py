"""Shared test fixtures for the TestMedic test suite."""

from pathlib import Path

import pytest

from testmedic.audit.logger import AuditLogger
from testmedic.healing.backends.base import HealingBackend
from testmedic.healing.backup import BackupManager
from testmedic.healing.models import AnalysisResult, SanitizedTestData
from testmedic.healing.verification import VerificationResult

ORIGINAL_SPEC = """import { test, expect } from '@playwright/test';

test('login works', async ({ page }) => {
  await page.goto('http://localhost:3000/login');
  await page.locator('#submit').click();
  await expect(page.getByText('Welcome')).toBeVisible();
});
"""

FIXED_SPEC = """import { test, expect } from '@playwright/test';

test('login works', async ({ page }) => {
  await page.goto('http://localhost:3000/login');
  await page.waitForLoadState('networkidle');
  await page.getByRole('button', { name: 'Sign in' }).click();
  await expect(page.getByText('Welcome')).toBeVisible();
});
"""


def fenced(code: str, language: str = "typescript") -> str:
    return f"Here is the fixed test:\n\n```{language}\n{code}```\n"


class FakeBackend(HealingBackend):
    """In-process backend: canned analysis and canned verification."""

    def __init__(self, analysis=None, verification_passed=True, analyze_error=None, verify_error=None):
        self.analysis = analysis or AnalysisResult(code=FIXED_SPEC, explanation=fenced(FIXED_SPEC), confidence=85)
        self.verification_passed = verification_passed
        self.analyze_error = analyze_error
        self.verify_error = verify_error
        self.analyze_calls: list[SanitizedTestData] = []
        self.verify_calls: list[str] = []
        self.file_content_at_verify: list[str] = []

    @property
    def name(self) -> str:
        return "fake"

    async def analyze_failure(self, data):
        self.analyze_calls.append(data)
        if self.analyze_error:
            raise self.analyze_error
        return self.analysis

    async def verify_fix(self, file_path):
        self.verify_calls.append(str(file_path))
        self.file_content_at_verify.append(Path(file_path).read_text(encoding="utf-8"))
        if self.verify_error:
            raise self.verify_error
        if self.verification_passed:
            return VerificationResult(passed=True, passed_count=1, exit_code=0)
        return VerificationResult(passed=False, failed_count=1, exit_code=1, output_tail="still failing")


@pytest.fixture
def spec_file(tmp_path):
    """A Playwright spec file on disk."""
    path = tmp_path / "tests" / "login.spec.ts"
    path.parent.mkdir(parents=True)
    path.write_text(ORIGINAL_SPEC, encoding="utf-8")
    return path


@pytest.fixture
def audit_logger(tmp_path):
    return AuditLogger(tmp_path / "logs" / ".healer-audit.log")


@pytest.fixture
def backup_manager(tmp_path):
    return BackupManager(tmp_path / ".healer-backups", retention_days=7, max_count=5)

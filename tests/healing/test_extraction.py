"""Tests for code extraction and confidence scoring."""

from testmedic.healing.extraction import extract_code, fenced_blocks, score_confidence

from conftest import FIXED_SPEC, fenced


class TestExtractCode:
    def test_single_block(self):
        assert extract_code(fenced(FIXED_SPEC)) == FIXED_SPEC

    def test_longest_qualifying_block_wins(self):
        snippet = "await page.locator('#a').click();\nexpect(page).toBeTruthy();\n"
        response = fenced(snippet) + "\nAnd the full file:\n" + fenced(FIXED_SPEC)
        assert extract_code(response) == FIXED_SPEC

    def test_non_code_blocks_are_ignored(self):
        response = "```bash\nnpx playwright test\n```\n\n```text\nThe button moved.\n```"
        assert extract_code(response) is None

    def test_no_blocks(self):
        assert extract_code("I could not find a fix.") is None
        assert extract_code("") is None
        assert extract_code(None) is None

    def test_unlabelled_fence(self):
        response = "```\nimport { test } from '@playwright/test';\ntest('x', async () => {});\n```"
        assert extract_code(response).startswith("import { test }")

    def test_python_block(self):
        code = "def test_login(page):\n    page.get_by_role('button').click()\n"
        assert extract_code(fenced(code, "python")) == code

    def test_fenced_blocks_in_order(self):
        assert fenced_blocks("```a\none\n```\n```b\ntwo\n```") == ["one\n", "two\n"]


class TestScoreConfidence:
    def test_base_score(self):
        assert score_confidence("no code here") == 50

    def test_code_block_bonus(self):
        assert score_confidence("```ts\ntest('a', () => {});\n```") == 70

    def test_all_bonuses_capped(self):
        response = fenced(FIXED_SPEC) + "x" * 300
        assert score_confidence(response) == 100

    def test_idioms_without_block(self):
        assert score_confidence("use page.getByRole instead") == 65

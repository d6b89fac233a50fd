from django.test import SimpleTestCase

from .normalizer import (
    DEPARTMENT_SYNONYMS,
    candidate_tokens,
    is_visible,
    match,
    matches_any,
    normalize,
)


class NormalizeTest(SimpleTestCase):
    """Test cases for department label normalization"""

    def test_synonyms_collapse_to_token(self):
        self.assertEqual(normalize("Software Developers"), "software")
        self.assertEqual(normalize("HR & Admin"), "hr")
        self.assertEqual(normalize("Pre-Sales"), "presales")
        self.assertEqual(normalize("Information Technology"), "it")
        self.assertEqual(normalize("Testing"), "qa")

    def test_unknown_label_falls_back_to_lowercase(self):
        self.assertEqual(normalize("  Research  "), "research")

    def test_inner_whitespace_is_collapsed(self):
        self.assertEqual(normalize("software   developers"), "software")

    def test_blank_values(self):
        self.assertEqual(normalize(None), "")
        self.assertEqual(normalize("   "), "")

    def test_empty_labels_never_match(self):
        self.assertFalse(match("", ""))
        self.assertFalse(match(None, " "))


class MatchSymmetryTest(SimpleTestCase):

    def test_match_is_symmetric_for_all_known_labels(self):
        labels = list(DEPARTMENT_SYNONYMS.keys()) + ["Research", ""]
        for a in labels:
            for b in labels:
                self.assertEqual(match(a, b), match(b, a), msg=f"{a!r} vs {b!r}")

    def test_synonyms_match_each_other(self):
        self.assertTrue(match("Human Resources", "hr and admin"))
        self.assertFalse(match("Finance", "Software"))


class CandidateTokensTest(SimpleTestCase):

    def test_accepts_every_shape(self):
        self.assertEqual(candidate_tokens("Finance"), {"finance"})
        self.assertEqual(candidate_tokens("Finance, Software Developer"), {"finance", "software"})
        self.assertEqual(candidate_tokens(["QA", "Sales, Marketing"]), {"qa", "sales", "marketing"})
        self.assertEqual(candidate_tokens(None), set())
        self.assertEqual(candidate_tokens([]), set())

    def test_matches_any_candidate(self):
        self.assertTrue(matches_any("Software Developers", ["finance", "software"]))
        self.assertFalse(matches_any("Finance", "software"))


class VisibilityTest(SimpleTestCase):

    def test_department_scenario(self):
        self.assertTrue(is_visible(["software"], role="employee", user_department="Software Developers"))
        self.assertFalse(is_visible(["software"], role="employee", user_department="Finance"))
        self.assertTrue(is_visible(["software"], role="admin", user_department="Finance"))

    def test_untagged_project_is_hidden_when_filtering(self):
        self.assertFalse(is_visible([], role="manager", user_department="Finance"))
        self.assertTrue(is_visible([], role="admin", user_department="Finance"))

    def test_no_user_department_means_no_narrowing(self):
        self.assertTrue(is_visible(["finance"], role="employee", user_department=""))

"""
Unit tests for QuizPlay data models.
"""
import unittest

from quizplay.models import QuestionKind, SessionResult, normalize_answer
from tests.test_fixtures import TestFixtures


class TestNormalizeAnswer(unittest.TestCase):

    def test_trims_and_folds_case(self):
        self.assertEqual(normalize_answer("  Paris "), "paris")

    def test_none_is_empty(self):
        self.assertEqual(normalize_answer(None), "")


class TestQuestionKind(unittest.TestCase):

    def test_parse_spellings(self):
        self.assertIs(QuestionKind.parse("multiple"), QuestionKind.MULTIPLE_CHOICE)
        self.assertIs(QuestionKind.parse("Multiple-Choice"), QuestionKind.MULTIPLE_CHOICE)
        self.assertIs(QuestionKind.parse("boolean"), QuestionKind.BOOLEAN)

    def test_parse_unknown(self):
        with self.assertRaises(ValueError):
            QuestionKind.parse("essay")


class TestQuestionOptions(unittest.TestCase):
    """Test cases for the answer choices presented to users."""

    def test_options_sorted_with_correct_answer(self):
        question = TestFixtures.multiple_choice("Capital?", "Paris", ["Rome", "Berlin"])

        self.assertEqual(question.options(), ["Berlin", "Paris", "Rome"])

    def test_duplicate_of_correct_answer_collapsed(self):
        """Test that a distractor equal to the correct answer is shown once."""
        question = TestFixtures.multiple_choice("Capital?", "Paris", [" paris", "Rome", "ROME"])

        options = question.options()

        self.assertEqual(len(options), 2)
        self.assertEqual([normalize_answer(o) for o in options], ["paris", "rome"])

    def test_empty_distractors(self):
        question = TestFixtures.multiple_choice("Only one", "Yes")

        self.assertEqual(question.options(), ["Yes"])

    def test_boolean_options(self):
        question = TestFixtures.boolean("Sky is blue.", "True")

        self.assertEqual(question.options(), ["True", "False"])

    def test_is_correct(self):
        question = TestFixtures.multiple_choice("Capital?", "Paris")

        self.assertTrue(question.is_correct(" PARIS"))
        self.assertFalse(question.is_correct(""))
        self.assertFalse(question.is_correct(None))


class TestSessionResult(unittest.TestCase):

    def test_percentage(self):
        self.assertEqual(SessionResult(score=3, total=4).percentage, 75.0)


if __name__ == '__main__':
    unittest.main()

import pytest

from problem_api.problems.classify import suggest_metadata
from problem_api.problems.models import MetadataSuggestion


def test_math_problem_gets_exam_subject_and_category():
    s = suggest_metadata("AMC 10 Problem 5: In triangle ABC, find the area. Geometry section.")
    assert s == MetadataSuggestion(exam_type="AMC10", subject="Mathematics", category="Geometry")


@pytest.mark.parametrize(
    "text,exam",
    [
        ("2019 AMC12 A problem 4", "AMC12"),
        ("AIME I 2020", "AIME"),
        ("Mathcounts state sprint round", "MATHCOUNTS"),
        ("SAT practice test, no calculator", "SAT"),
        ("AP Calculus AB free response", "AP Calculus"),
        ("AP Statistics multiple choice", "AP Statistics"),
    ],
)
def test_exam_types(text, exam):
    assert suggest_metadata(text).exam_type == exam


def test_first_declared_exam_wins():
    assert suggest_metadata("AMC 12 and AMC 10 share problems").exam_type == "AMC10"


def test_sat_is_a_whole_word():
    assert suggest_metadata("Saturday morning practice").exam_type is None
    assert suggest_metadata("The answer satisfies the equation").exam_type is None
    assert suggest_metadata("Official SAT question").exam_type == "SAT"


def test_non_math_subject_suppresses_category():
    s = suggest_metadata("Physics: a cart on an incline; find the angle of the ramp")
    assert s.subject == "Physics"
    assert s.category is None


def test_category_without_any_subject():
    s = suggest_metadata("How many prime numbers are less than 20?")
    assert s.subject is None
    assert s.category == "Number Theory"


def test_first_matching_category_wins():
    # "solve" (Algebra) is declared before "probability" (Combinatorics)
    s = suggest_metadata("Solve for the probability that both coins land heads")
    assert s.category == "Algebra"


def test_nothing_detected():
    assert suggest_metadata("Lorem ipsum dolor") == MetadataSuggestion()
    assert suggest_metadata("") == MetadataSuggestion()


@pytest.mark.parametrize(
    "text,exam",
    [
        ("2012 AMC 10A Problem 5: How many primes?", "AMC10"),
        ("2024 AMC 10B", "AMC10"),
        ("2013 AMC 12B Problem 3", "AMC12"),
        ("AMC12A 2020", "AMC12"),
    ],
)
def test_amc_contest_variants_keep_their_exam_type(text, exam):
    assert suggest_metadata(text).exam_type == exam


def test_precalculus_is_mathematics():
    s = suggest_metadata("Precalculus review: solve the system")
    assert s.subject == "Mathematics"
    assert s.category == "Algebra"

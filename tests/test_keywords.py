import pytest

from glz.shared.keywords import normalize_course_info, normalize_evaluation


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Outstanding", "Outstanding"),
        ("  good ", "Good"),
        ("very good", "Outstanding"),
        ("Sehr gut", "Outstanding"),
        ("très bien", "Outstanding"),
        ("très bon", "Good"),
        ("mit gutem Erfolg", "Good"),
        ("mit Erfolg", "Satisfactory"),
        ("Assez bien", "Satisfactory"),
        ("Teilgenommen", "Participant"),
    ],
)
def test_evaluation_keywords(raw, expected):
    assert normalize_evaluation(raw) == expected


def test_evaluation_unmatched():
    assert normalize_evaluation("brilliant") is None
    assert normalize_evaluation("") is None


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Complete level", "Complete level"),
        ("complet", "Complete level"),
        ("Partially completed level", "Partially completed level"),
        ("Niveau partiel", "Partially completed level"),
        ("Incomplete", "Partially completed level"),
        ("Niveau incomplet", "Partially completed level"),
        ("unvollständig", "Partially completed level"),
        ("Kurs abgebrochen", "Course dropped out"),
        ("dropped", "Course dropped out"),
        ("Keine Teilnahme", "No participation"),
        ("no participation", "No participation"),
    ],
)
def test_course_info_keywords(raw, expected):
    assert normalize_course_info(raw) == expected


def test_course_info_unmatched():
    assert normalize_course_info("halfway") is None

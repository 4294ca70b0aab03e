# tests/test_event_checks.py
from processing.event_checks import (
    categorize_era,
    find_leakage,
    has_proper_noun,
    is_valid_word_count,
    run_deterministic_checks,
    validate_metadata,
)


def test_small_numerals_are_not_leakage():
    assert find_leakage("Ramesses 2 builds at Abu Simbel") == []
    assert find_leakage("Apollo 11 lands") == ["large_numbers"]


def test_century_and_era_terms_are_leakage():
    assert find_leakage("A new century dawns in Rome") == ["century_terms"]
    assert find_leakage("Augustus rules, circa AD") == ["era_markers"]
    assert find_leakage("Founded around 500 B.C.") == ["large_numbers", "era_markers"]
    assert find_leakage("Cecil becomes chancellor") == []


def test_proper_noun_ignores_first_word():
    assert has_proper_noun("Emperor crowned in Aachen")
    assert not has_proper_noun("Rebels storm the palace")


def test_word_limit():
    assert is_valid_word_count(" ".join(["word"] * 20))
    assert not is_valid_word_count(" ".join(["word"] * 21))


def test_categorize_era_boundaries():
    assert categorize_era(-776) == "ancient"
    assert categorize_era(499) == "ancient"
    assert categorize_era(500) == "medieval"
    assert categorize_era(1499) == "medieval"
    assert categorize_era(1500) == "modern"


def test_metadata_checks(event_factory):
    assert validate_metadata(event_factory(metadata=None), -49).issues == [
        "Missing metadata"
    ]
    outcome = validate_metadata(
        event_factory(
            metadata={"difficulty": 9, "category": ["gossip"], "era": "modern"}
        ),
        -49,
    )
    assert outcome.issues == [
        "Metadata difficulty out of range",
        "Metadata category not in allowed list",
        "Metadata era does not match year",
    ]
    assert outcome.rewrite_hints[-1] == "Set era to ancient"


def test_deterministic_checks_combine_rules(event_factory):
    clean = run_deterministic_checks(event_factory(), -49)
    assert not clean.failed

    flagged = event_factory(leak_flags={"has_digits": True})
    assert run_deterministic_checks(flagged, -49).issues[0].startswith(
        "Contains year leakage"
    )

    wordy = event_factory("caesar " + " ".join(["marches"] * 25))
    issues = run_deterministic_checks(wordy, -49).issues
    assert "Exceeds 20-word limit" in issues
    assert "Missing proper noun to anchor the clue" in issues

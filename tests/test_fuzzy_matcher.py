import pytest

from automod.moderation.fuzzy_matcher import fuzzy_match, levenshtein, sanitize, similarity


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ("", "", 0),
        ("abc", "", 3),
        ("kitten", "sitting", 3),
        ("spam", "spaam", 1),
        ("flaw", "lawn", 2),
    ],
)
def test_levenshtein_known_distances(a, b, expected):
    assert levenshtein(a, b) == expected


@pytest.mark.parametrize(
    ("a", "b"),
    [("kitten", "sitting"), ("", "abc"), ("discord", "dsicord"), ("hello world", "world hello")],
)
def test_levenshtein_is_symmetric(a, b):
    assert levenshtein(a, b) == levenshtein(b, a)


def test_similarity_edge_cases():
    assert similarity("", "") == 1.0
    assert similarity("abc", "") == 0.0
    assert similarity("", "abc") == 0.0
    assert similarity("spam", "spaam") == pytest.approx(0.8)


def test_fuzzy_match_accepts_one_typo_at_default_sensitivity():
    assert fuzzy_match("spaam", "spam", 0.8) is True


def test_fuzzy_match_substring_is_case_insensitive():
    assert fuzzy_match("Buy CHEAP pills now", "cheap") is True


def test_fuzzy_match_full_sensitivity_requires_literal_substring():
    assert fuzzy_match("this is SPAM!", "spam", 1.0) is True
    assert fuzzy_match("spaam", "spam", 1.0) is False


def test_fuzzy_match_compares_whole_content_not_tokens():
    # One typo inside a long message is far from the keyword as a whole
    assert fuzzy_match("please stop sending spaam here", "spam", 0.8) is False


def test_sanitize_strips_code_and_quotes():
    content = 'before ```block spam``` `inline spam` "quoted spam" \'single spam\' after'

    cleaned = sanitize(content)

    assert "spam" not in cleaned
    assert cleaned.startswith("before")
    assert cleaned.endswith("after")


def test_sanitize_leaves_plain_text_alone():
    assert sanitize("nothing to strip here") == "nothing to strip here"

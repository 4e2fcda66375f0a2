from bio_verifier import CodeMatcher
from bio_verifier.matcher import DEFAULT_SUBSTITUTION, parse_substitution


def test_matches_code_anywhere_in_bio():
    matcher = CodeMatcher()
    assert matcher.match("hi ABCD-54321 bye", ["ABCD-54321"]) == "ABCD-54321"


def test_match_is_case_insensitive():
    matcher = CodeMatcher()
    assert matcher.match("my code: abcd-54321 :)", ["ABCD-54321"]) == "ABCD-54321"


def test_common_brand_misspelling_still_matches():
    matcher = CodeMatcher()
    assert matcher.match("JAMIE-12345 fan acct", ["JAIME-12345"]) == "JAIME-12345"


def test_misspelling_is_not_applied_in_reverse():
    matcher = CodeMatcher()
    assert matcher.match("JAIME-12345", ["JAMIE-12345"]) is None


def test_returns_first_matching_candidate_in_order():
    matcher = CodeMatcher()
    bio = "old VERIFY-11111 and VERIFY-22222"
    assert matcher.match(bio, ["VERIFY-33333", "VERIFY-22222", "VERIFY-11111"]) == (
        "VERIFY-22222"
    )


def test_no_match_and_empty_bio():
    matcher = CodeMatcher()
    assert matcher.match("nothing to see", ["ABCD-54321"]) is None
    assert matcher.match("", ["ABCD-54321"]) is None
    assert matcher.match(None, ["ABCD-54321"]) is None


def test_substitution_can_be_disabled():
    matcher = CodeMatcher(substitution=None)
    assert matcher.match("JAMIE-12345", ["JAIME-12345"]) is None


def test_parse_substitution():
    assert parse_substitution(None) == DEFAULT_SUBSTITUTION
    assert parse_substitution("BEA:BAE") == ("BEA", "BAE")
    assert parse_substitution("") is None
    assert parse_substitution("nocolon") is None

from amplifier.generation.validator import (
    HINT_HASHTAG,
    HINT_SHORTER,
    are_responses_too_similar,
    check_text,
    validate_result,
)
from conftest import HASHTAG, draft, good_result


def _result(*texts):
    return {"responses": [draft(t) for t in texts]}


def test_clean_result_is_valid():
    outcome = validate_result(good_result(), True, "reply")
    assert outcome.valid
    assert outcome.issues == []
    assert outcome.fix_hints == []
    assert not outcome.refusal


def test_non_dict_result_is_invalid_json():
    outcome = validate_result("not json", True, "reply")
    assert outcome.issues == ["invalid_json"]
    assert outcome.fix_hints == []


def test_too_long_adds_shorten_hint():
    outcome = validate_result(_result("x" * 281 + HASHTAG, f"short one {HASHTAG}", f"another {HASHTAG}"), True, "reply")
    assert not outcome.valid
    assert "too_long" in outcome.issues
    assert outcome.fix_hints == [HINT_SHORTER]


def test_exactly_280_chars_is_not_too_long():
    text = HASHTAG + " " + "a" * (280 - len(HASHTAG) - 1)
    assert len(text) == 280
    assert "too_long" not in check_text(text)


def test_missing_hashtag_adds_hint():
    outcome = validate_result(_result("We will not forget.", f"Second {HASHTAG}", f"Third {HASHTAG}"), True, "quote")
    assert outcome.issues == ["missing_hashtag"]
    assert outcome.fix_hints == [HINT_HASHTAG]


def test_hashtag_check_is_case_sensitive():
    assert "missing_hashtag" in check_text("#iranrevolution2026 lowercase")


def test_too_many_hashtags():
    assert "too_many_hashtags" in check_text(f"{HASHTAG} #FreeIran #IRGCTerrorists")
    assert "too_many_hashtags" not in check_text(f"{HASHTAG} #FreeIran")


def test_excluded_source_detected():
    assert "excluded_source" in check_text(f"As NIAC said yesterday {HASHTAG}")
    assert "excluded_source" in check_text(f"trita parsi disagrees {HASHTAG}")
    assert "excluded_source" not in check_text(f"NIACS is not a word {HASHTAG}")


def test_threat_short_circuits_to_refusal():
    outcome = validate_result(
        _result(f"Death to the oppressors {HASHTAG}", "x" * 400, "no hashtag"), True, "reply"
    )
    assert outcome.refusal
    assert not outcome.valid
    assert outcome.issues == ["threat_detected"]
    assert outcome.fix_hints == []


def test_accountability_language_is_not_a_threat():
    assert "threat_detected" not in check_text(f"Hold them accountable in court. {HASHTAG}")


def test_wrong_count_and_empty_response():
    assert "wrong_count" in validate_result({"responses": []}, True, "reply").issues
    assert "wrong_count" in validate_result({"analysis": {}}, True, "reply").issues
    four = _result(*(f"take {i} {HASHTAG}" for i in range(4)))
    assert "wrong_count" in validate_result(four, True, "reply").issues
    empty = validate_result({"responses": [{"text": ""}, draft(f"ok {HASHTAG}")]}, True, "reply")
    assert "empty_response" in empty.issues


def test_legacy_array_used_when_responses_missing():
    result = {"replies": [draft(f"one {HASHTAG}"), draft(f"two {HASHTAG}")]}
    assert validate_result(result, True, "reply").valid


def test_issues_are_deduplicated():
    outcome = validate_result(_result("no tag one", "no tag two", "no tag three"), True, "reply")
    assert outcome.issues.count("missing_hashtag") == 1


def test_similarity_boundaries():
    assert are_responses_too_similar([draft("a"), draft("a"), draft("a")])
    assert not are_responses_too_similar([draft("a"), draft("a"), draft("b")])
    assert not are_responses_too_similar([draft("a"), draft("a"), draft("a"), draft("b")])
    assert not are_responses_too_similar([draft("a")])


def test_similarity_uses_lowercased_prefix():
    base = "Our people will not be silenced by bullets or blackouts"
    assert are_responses_too_similar([draft(base + " one"), draft(base.upper() + " two"), draft(base + " three")])


def test_similar_responses_get_diversify_hint_first():
    same = f"Same opening line for every single response here!! {HASHTAG}"
    outcome = validate_result(_result(same, same, same + "y" * 300), True, "reply")
    assert "replys_too_similar" in outcome.issues
    assert outcome.fix_hints[0] == "Make each reply structurally different."
    assert outcome.fix_hints[1] == HINT_SHORTER


def test_batch_format_checks_both_arrays():
    result = {"replies": [draft(f"r {HASHTAG}")], "quotes": []}
    outcome = validate_result(result, False)
    assert outcome.issues == ["wrong_quotes_count"]
    outcome = validate_result({"replies": [draft(f"r {HASHTAG}")]}, False)
    assert outcome.issues == ["wrong_quotes_count"]

import pytest

from askdata.policy import SUGGESTIONS_DELIMITER
from askdata.suggestions import SuggestionsParser, parse_response

D = SUGGESTIONS_DELIMITER


def test_parse_well_formed_response() -> None:
    parsed = parse_response(f'Revenue is up 12%.\n{D}{{"suggestions": ["By region?", "By month?", "Top SKUs?"]}}{D}')

    assert parsed.ok
    assert parsed.text == "Revenue is up 12%."
    assert parsed.suggestions == ["By region?", "By month?", "Top SKUs?"]


def test_block_must_be_the_exact_suffix() -> None:
    parsed = parse_response(f'Done.{D}{{"suggestions": ["a?", "b?", "c?", "d?"]}}{D}\n  ')

    assert not parsed.ok
    assert parsed.violation == "text after suggestions block"


@pytest.mark.parametrize(
    ("raw", "violation"),
    [
        ("Just prose.", "missing suggestions block"),
        (f'Prose.{D}{{"suggestions": ["a?"]}}', "unterminated suggestions block"),
        (f'Prose.{D}{{"suggestions": ["a?", "b?", "c?"]}}{D} more', "text after suggestions block"),
        (f"Prose.{D}not json{D}", "suggestions block is not valid JSON"),
        (f'Prose.{D}{{"suggestions": "a?"}}{D}', "suggestions must be a list of strings"),
        (f'Prose.{D}["a?", "b?", "c?"]{D}', "suggestions must be a list of strings"),
    ],
)
def test_format_violations(raw: str, violation: str) -> None:
    parsed = parse_response(raw)

    assert not parsed.ok
    assert parsed.violation == violation
    assert parsed.text.startswith(raw[:5])


def test_wrong_suggestion_count_still_returns_suggestions() -> None:
    parsed = parse_response(f'Prose.{D}{{"suggestions": ["a?", "b?"]}}{D}')

    assert parsed.violation == "expected 3-4 suggestions, got 2"
    assert parsed.suggestions == ["a?", "b?"]


def test_feed_holds_back_a_partial_delimiter() -> None:
    parser = SuggestionsParser()

    assert parser.feed("Revenue is ") == "Revenue is "
    assert parser.feed("up. <<END_OF") == "up. "
    assert parser.feed('_RESPONSE>>{"suggestions": ["a?", "b?", "c?"]}') == ""
    assert parser.feed(D) == ""
    assert parser.flush() == ""

    parsed = parser.finish()
    assert parsed.ok
    assert parsed.text == "Revenue is up."


def test_flush_releases_held_text_without_delimiter() -> None:
    parser = SuggestionsParser()

    assert parser.feed("a << b <<") == "a << b "
    assert parser.flush() == "<<"
    assert parser.finish().violation == "missing suggestions block"


def test_feed_character_by_character_matches_whole_response() -> None:
    prose = "Revenue grew 12% in EMEA, led by <b>hardware</b> << software.\n"
    raw = prose + f'{D}{{"suggestions": ["By quarter?", "By rep?", "Churn?"]}}{D}'
    parser = SuggestionsParser()

    shown = "".join(parser.feed(char) for char in raw) + parser.flush()

    assert shown == prose
    assert parser.text == raw
    assert parser.finish().suggestions == ["By quarter?", "By rep?", "Churn?"]

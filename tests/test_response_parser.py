import json

import pytest

from reviewagent.response_parser import FALLBACK_SUMMARY, parse_review_response

REVIEW = {
    "summary": "Adds retry handling",
    "score": 82,
    "positiveAspects": ["Clear naming"],
    "suggestions": [
        {
            "id": "suggestion_1",
            "type": "performance",
            "title": "Cache the client",
            "description": "The client is rebuilt per call",
            "severity": "low",
            "file": "app/client.py",
            "line": 12,
        }
    ],
    "issues": [
        {
            "id": "issue_1",
            "type": "security",
            "title": "Token logged",
            "description": "The token is written to the log",
            "severity": "critical",
            "file": "app/auth.py",
            "line": 40,
            "suggestedFix": "logger.info('token acquired')",
        }
    ],
}


class TestParseReviewResponse:
    def test_bare_json(self):
        result = parse_review_response(json.dumps(REVIEW))

        assert result.summary == "Adds retry handling"
        assert result.score == 82
        assert result.positive_aspects == ["Clear naming"]
        assert result.suggestions[0].type == "performance"
        assert result.issues[0].severity == "critical"
        assert result.issues[0].suggested_fix == "logger.info('token acquired')"

    @pytest.mark.parametrize(
        "wrapped",
        [
            "```json\n{body}\n```",
            "```\n{body}\n```",
            "<think>The user wants JSON {{not this}}</think>\n{body}",
            "<thinking>plan</thinking>```json\n{body}\n```",
            "Here is my review:\n{body}\nLet me know if you need more.",
        ],
    )
    def test_wrapped_output_parses_like_bare_json(self, wrapped):
        body = json.dumps(REVIEW, indent=2)
        assert parse_review_response(wrapped.format(body=body)) == parse_review_response(body)

    def test_braces_inside_strings_do_not_end_the_object(self):
        text = 'Result: {"summary": "Use {} for dicts", "score": 70} trailing }'

        result = parse_review_response(text)

        assert result.summary == "Use {} for dicts"
        assert result.score == 70

    def test_fences_inside_string_values_are_kept(self):
        body = json.dumps(
            {
                "summary": "Formatting",
                "score": 60,
                "suggestions": [
                    {
                        "title": "Fence the snippet",
                        "description": "Wrap it in ```python fences",
                        "suggestedFix": "```python\nx = 1\n```",
                    }
                ],
            }
        )

        result = parse_review_response(f"```json\n{body}\n```")

        suggestion = result.suggestions[0]
        assert suggestion.description == "Wrap it in ```python fences"
        assert suggestion.suggested_fix == "```python\nx = 1\n```"

    @pytest.mark.parametrize(
        "raw,expected",
        [(150, 100), (-5, 0), (79.6, 80), ("65", 65), ("high", 0), (None, 0), (True, 0)],
    )
    def test_score_is_clamped_to_integer_range(self, raw, expected):
        result = parse_review_response(json.dumps({"summary": "s", "score": raw}))
        assert result.score == expected

    def test_missing_fields_get_defaults(self):
        text = json.dumps(
            {
                "suggestions": [{"message": "Split this function"}, "not an object"],
                "issues": [{"type": "typo", "severity": "urgent"}],
                "positiveAspects": ["Tests added", 3, None],
            }
        )

        result = parse_review_response(text)

        assert result.summary == "No summary provided"
        assert result.score == 0
        assert len(result.suggestions) == 1
        suggestion = result.suggestions[0]
        assert suggestion.id == "suggestion_1"
        assert suggestion.type == "improvement"
        assert suggestion.severity == "low"
        assert suggestion.title == "Split this function"
        assert suggestion.description == "Split this function"

        issue = result.issues[0]
        assert issue.id == "issue_1"
        assert issue.type == "bug"
        assert issue.severity == "medium"
        assert issue.title == "Issue"
        assert issue.description == "Code issue found"
        assert result.positive_aspects == ["Tests added"]

    def test_snake_case_fields_are_accepted(self):
        text = json.dumps(
            {
                "summary": "ok",
                "score": 90,
                "positive_aspects": ["Small diff"],
                "issues": [{"title": "t", "suggested_fix": "x = 1", "line": "7"}],
            }
        )

        result = parse_review_response(text)

        assert result.positive_aspects == ["Small diff"]
        assert result.issues[0].suggested_fix == "x = 1"
        assert result.issues[0].line == 7

    @pytest.mark.parametrize(
        "text",
        ["", "I could not review this code.", "{not json at all", "[1, 2, 3]", '{"summary": '],
    )
    def test_unusable_output_yields_fallback(self, text):
        result = parse_review_response(text)

        assert result.summary == FALLBACK_SUMMARY
        assert result.score == 0
        assert result.suggestions == []
        assert result.issues == []
        assert result.positive_aspects == []

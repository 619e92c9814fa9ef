import pytest

from news_digest.schema import SUMMARY_PAYLOAD, TOPIC_VALIDATION, load_schema, validate_payload


def test_bundled_schemas_load():
    assert load_schema(SUMMARY_PAYLOAD)["title"] == "SummaryPayload"
    assert load_schema(TOPIC_VALIDATION)["additionalProperties"] is False


def test_errors_point_at_nested_fields():
    payload = {
        "mode": "fast",
        "style": "balanced",
        "count": 1,
        "at": "2025-06-01T00:00:00.000Z",
        "blocks": [{"kind": "headline", "idx": 1, "title": "t", "url": ""}],
    }
    with pytest.raises(ValueError) as excinfo:
        validate_payload(payload, SUMMARY_PAYLOAD)
    assert "$.blocks[0].url:" in str(excinfo.value)


def test_root_level_errors_use_dollar_path():
    with pytest.raises(ValueError, match=r"\$: 'valid' is a required property"):
        validate_payload({"topic": "golf"}, TOPIC_VALIDATION)


def test_valid_payload_is_returned():
    payload = {"valid": True, "topic": "golf", "reason": None}
    assert validate_payload(payload, TOPIC_VALIDATION) is payload

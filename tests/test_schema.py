from __future__ import annotations

from schema import decode_enrichment, try_parse_json


def test_decodes_well_formed_payload() -> None:
    result = decode_enrichment(
        {
            "knowledgeCards": [
                {
                    "id": "glossary",
                    "emoji": "📘",
                    "title": "SLA",
                    "content": ["Service level agreement"],
                    "tags": ["ops"],
                    "sources": [],
                    "confidence": 87,
                }
            ],
            "predictedPaths": [{"text": "Discuss penalties", "probability": 60, "why": "SLA raised"}],
            "talkingPoints": [{"text": "Ask about uptime", "tone": "curious"}],
            "followUps": [{"text": "Send the SLA draft"}],
        }
    )

    card = result.knowledge_cards[0]
    assert (card.id, card.title, card.content, card.confidence) == ("glossary", "SLA", ["Service level agreement"], 87)
    assert result.predicted_paths[0].probability == 60
    assert result.talking_points[0].tone == "curious"
    assert result.follow_ups[0].text == "Send the SLA draft"
    assert result.fetched_at is None


def test_bad_fields_are_normalized() -> None:
    result = decode_enrichment(
        {
            "knowledgeCards": "not a list",
            "predictedPaths": [{"text": "x", "probability": "250"}, {"probability": 10}, 42],
            "talkingPoints": [{"text": "y", "tone": "aggressive"}, "plain string point"],
            "followUps": [None, {"text": "  "}],
        }
    )

    assert result.knowledge_cards == []
    assert [(p.text, p.probability) for p in result.predicted_paths] == [("x", 100)]
    assert [(t.text, t.tone) for t in result.talking_points] == [("y", "neutral"), ("plain string point", "neutral")]
    assert result.follow_ups == []


def test_unparseable_text_becomes_single_topic_card() -> None:
    result = decode_enrichment("The team is discussing Q3 hiring. " * 20)

    assert len(result.knowledge_cards) == 1
    card = result.knowledge_cards[0]
    assert card.id == "topic"
    assert card.title == "Current Topic"
    assert len(card.content[0]) == 300
    assert result.predicted_paths == [] and result.talking_points == [] and result.follow_ups == []


def test_json_wrapped_in_prose_is_recovered() -> None:
    result = decode_enrichment('Sure! {"followUps": [{"text": "Confirm owner"}]} Hope this helps')

    assert [f.text for f in result.follow_ups] == ["Confirm owner"]
    assert result.knowledge_cards == []


def test_unknown_object_falls_back_to_card() -> None:
    result = decode_enrichment({"answer": "something"})

    assert result.knowledge_cards[0].title == "Current Topic"
    assert "something" in result.knowledge_cards[0].content[0]


def test_empty_object_is_an_empty_result() -> None:
    assert decode_enrichment({}).is_empty()


def test_try_parse_json() -> None:
    assert try_parse_json('{"a": 1}') == {"a": 1}
    assert try_parse_json("[1, 2]") is None
    assert try_parse_json("") is None
    assert try_parse_json(None) is None

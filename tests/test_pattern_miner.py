"""Unit tests for PatternMiner: conversation mining and site-data training."""

import pytest

from afac_assistant.models import COURSE_RECOMMENDATION, FREQUENT_QUESTION, SUCCESS_STORY, TOPIC_PATTERN
from afac_assistant.pattern_miner import PatternMiner, extract_common_phrases, most_common_response
from afac_assistant.pattern_store import ConversationLog, PatternStore
from afac_assistant.record_store import SupabaseRecordStore


@pytest.fixture
def miner(store):
    return PatternMiner(store, PatternStore(store), ConversationLog(store))


def _by_type(patterns, pattern_type):
    return [p for p in patterns if p.pattern_type == pattern_type]


@pytest.mark.unit
def test_most_common_response_ties_go_to_first_seen():
    responses = ["Visit the Academy page.", "Use the signup form.", "visit the academy page", "Use the signup form!"]
    assert most_common_response(responses) == "Visit the Academy page."
    assert most_common_response([]) == ""


@pytest.mark.unit
def test_extract_common_phrases_ranks_by_frequency():
    responses = [
        "Short. Rotate crops to rebuild organic matter. Mulch keeps the soil cool.",
        "Mulch keeps the soil cool! Rotate crops to rebuild organic matter.",
        "mulch keeps the soil cool",
    ]
    assert extract_common_phrases(responses) == [
        "Mulch keeps the soil cool",
        "Rotate crops to rebuild organic matter",
    ]


@pytest.mark.unit
def test_frequent_question_needs_three_occurrences(miner, make_conversation):
    conversations = [
        make_conversation("How do I enroll?", "Visit the Academy page.", age_minutes=1),
        make_conversation("how do i enroll", "Use the signup form.", age_minutes=2),
        make_conversation("How do I ENROLL!!", "Use the signup form.", age_minutes=3),
        make_conversation("How do I enroll?", "Visit the Academy page.", age_minutes=4),
        make_conversation("Where are you based?", "Lagos.", age_minutes=5),
        make_conversation("Where are you based?", "Lagos.", age_minutes=6),
    ]

    patterns = _by_type(miner.mine_patterns(conversations), FREQUENT_QUESTION)

    assert len(patterns) == 1
    pattern = patterns[0]
    assert pattern.trigger == "how do i enroll"
    assert pattern.response == "Visit the Academy page."
    assert pattern.confidence == pytest.approx(0.4)
    assert pattern.usage_count == 4
    assert pattern.last_used == conversations[0].created_at


@pytest.mark.unit
def test_frequent_question_confidence_caps_at_point_nine(miner, make_conversation):
    conversations = [make_conversation("Hello", "Hi there!", age_minutes=i) for i in range(15)]
    pattern = _by_type(miner.mine_patterns(conversations), FREQUENT_QUESTION)[0]
    assert pattern.confidence == pytest.approx(0.9)
    assert pattern.usage_count == 15


@pytest.mark.unit
def test_topic_pattern_from_successful_answers(miner, make_conversation):
    conversations = [
        make_conversation(
            "How do I test soil?",
            "Soil testing kits measure pH and nutrients. Send samples to a certified lab!",
            source="learned",
        ),
        make_conversation(
            "soil ph question",
            "Soil testing kits measure pH and nutrients. Add compost every season.",
            source="learned",
        ),
        make_conversation("best soil for maize", "Short one. Add compost every season?", source="default"),
        make_conversation("is my soil healthy", "Soil testing kits measure pH and nutrients.", source=None),
        make_conversation("soil compaction tips", "Rotate crops to rebuild organic matter.", source="default"),
    ]

    topics = _by_type(miner.mine_patterns(conversations), TOPIC_PATTERN)

    assert len(topics) == 1
    topic = topics[0]
    assert topic.trigger == "farming"
    assert topic.confidence == pytest.approx(0.8)
    assert topic.usage_count == 5
    assert topic.response == (
        "Soil testing kits measure pH and nutrients. "
        "Send samples to a certified lab. "
        "Add compost every season."
    )


@pytest.mark.unit
def test_topic_pattern_skipped_when_every_answer_was_default(miner, make_conversation):
    conversations = [
        make_conversation(f"question about harvest {i}", "Harvest at dawn to keep produce fresh.", source="default")
        for i in range(6)
    ]
    assert _by_type(miner.mine_patterns(conversations), TOPIC_PATTERN) == []


@pytest.mark.unit
def test_topic_pattern_needs_five_conversations(miner, make_conversation):
    conversations = [
        make_conversation(f"sensor question {i}", "Soil moisture sensors report every hour.", source="learned")
        for i in range(4)
    ]
    assert _by_type(miner.mine_patterns(conversations), TOPIC_PATTERN) == []


@pytest.mark.unit
def test_analyze_patterns_persists_without_duplicates(miner, store, make_conversation):
    for i in range(3):
        store.insert("ai_conversations", make_conversation("Do you offer certificates?", "Yes, for every course.",
                                                           age_minutes=i).to_record())

    first = miner.analyze_patterns()
    second = miner.analyze_patterns()

    assert [p.trigger for p in first] == ["do you offer certificates"]
    assert [p.trigger for p in second] == ["do you offer certificates"]
    rows = [row for row in store.tables["ai_patterns"] if row["trigger"] == "do you offer certificates"]
    assert len(rows) == 1
    assert rows[0]["confidence"] == pytest.approx(0.3)


@pytest.mark.unit
def test_analyze_patterns_tolerates_store_failure(miner, store):
    store.failing_tables.add("ai_conversations")
    assert miner.analyze_patterns() == []


@pytest.mark.unit
def test_train_from_site_data(miner, store):
    patterns = miner.train_from_site_data()

    recommendations = {p.trigger: p for p in _by_type(patterns, COURSE_RECOMMENDATION)}
    assert set(recommendations) == {"agriculture", "technology", "sustainability"}
    assert recommendations["agriculture"].response == (
        'For Agriculture, I recommend "Smart Farming Basics". We have 1 courses in this category.'
    )
    assert recommendations["agriculture"].confidence == pytest.approx(0.9)

    stories = _by_type(patterns, SUCCESS_STORY)
    assert len(stories) == 1
    assert stories[0].trigger == "success"
    assert "Doubled Maize Yield" in stories[0].response

    assert len(store.tables["ai_patterns"]) == 4


@pytest.mark.unit
def test_site_data_patterns_group_courses_by_category():
    courses = [
        {"title": "Soil 101", "category": "Agriculture"},
        {"title": "Untagged", "category": None},
        {"title": "Soil 201", "category": "Agriculture"},
    ]
    patterns = PatternMiner.generate_site_data_patterns(courses, [])
    assert len(patterns) == 1
    assert patterns[0].response == 'For Agriculture, I recommend "Soil 101". We have 2 courses in this category.'


@pytest.fixture
def supabase_miner(recorded_session):
    store = SupabaseRecordStore("https://demo.supabase.co", "anon-key", session=recorded_session)
    pattern_store = PatternStore(store)
    return PatternMiner(store, pattern_store, ConversationLog(store))


def _upserted_batches(session):
    return [call["json"] for call in session.calls if call["method"] == "POST"]


@pytest.mark.unit
def test_question_named_like_a_topic_is_sent_once(supabase_miner, recorded_session, http_response, make_conversation):
    rows = [
        make_conversation("Progress?", "Your dashboard lists every finished lesson. Keep going!",
                          source="learned", age_minutes=i).to_record()
        for i in range(5)
    ]
    recorded_session.queued.append(http_response(payload=rows))

    mined = supabase_miner.analyze_patterns()

    assert sorted(p.pattern_type for p in mined) == [FREQUENT_QUESTION, TOPIC_PATTERN]
    batches = _upserted_batches(recorded_session)
    assert len(batches) == 1
    assert [record["trigger"] for record in batches[0]] == ["progress"]
    assert batches[0][0]["pattern_type"] == TOPIC_PATTERN


@pytest.mark.unit
def test_categories_differing_by_case_are_sent_once(supabase_miner, recorded_session, http_response):
    recorded_session.queued.append(
        http_response(payload=[
            {"title": "Drone Mapping", "category": "Technology"},
            {"title": "Sensor Basics", "category": "technology"},
        ])
    )
    recorded_session.queued.append(http_response(payload=[]))

    supabase_miner.train_from_site_data()

    batches = _upserted_batches(recorded_session)
    assert len(batches) == 1
    triggers = [record["trigger"] for record in batches[0]]
    assert triggers == ["technology"]
    assert '"Sensor Basics"' in batches[0][0]["response"]

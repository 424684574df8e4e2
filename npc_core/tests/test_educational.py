import asyncio

from npc_core.conversation.educational import (
    EducationalConversation,
    LearningDifficulty,
    LearningProgressTracker,
    SubjectArea,
    subject_from_index,
)
from npc_core.domain.models import FetchResult
from npc_core.infrastructure.storage.game_data_store import GameData
from npc_core.providers.registry import LATEST_MODEL, LITE_MODEL


class FakeProvider:
    name = "fake"
    host = "http://fake"

    def __init__(self):
        self.requests = []

    async def chat_stream(self, req):
        self.requests.append(req)
        yield FetchResult(success=True, reply='{"message":"ok"}', final=True)

    def abort(self):
        pass


def _conversation(**kwargs):
    return EducationalConversation(FakeProvider(), npc_name="Sage", backstory="A gardener.", **kwargs)


def test_difficulty_parse():
    assert LearningDifficulty.parse("advanced") is LearningDifficulty.ADVANCED
    assert LearningDifficulty.parse(" Intermediate ") is LearningDifficulty.INTERMEDIATE
    assert LearningDifficulty.parse("expert") is None
    assert LearningDifficulty.parse(3) is None


def test_subject_labels_and_index():
    assert SubjectArea.SOIL_SCIENCE.label == "Soil Science"
    assert subject_from_index(2) is SubjectArea.SOIL_SCIENCE
    assert subject_from_index(99) is SubjectArea.SUSTAINABLE_FARMING


def test_tracker_marks_topic_once():
    tracker = LearningProgressTracker()
    assert tracker.mark_topic_completed("Mulch", "Composting") is True
    assert tracker.mark_topic_completed("Mulch", "Composting") is False
    assert tracker.completed_topics("Composting") == ["Mulch"]
    assert tracker.completed_topics("SoilScience") == []


def test_model_tier():
    assert _conversation().model == LATEST_MODEL
    assert _conversation(use_latest_model=False).model == LITE_MODEL


def test_initial_message_mentions_subject():
    conv = _conversation(subject=SubjectArea.WATER_MANAGEMENT)
    conv.start()
    assert "Water Management" in conv.history[-1].content


def test_prompt_rewrites_system_message_only_for_request():
    conv = _conversation(subject=SubjectArea.PLANT_BIOLOGY)
    conv.start()
    stored_prompt = conv.history[0].content
    conv.add_completed_topic("Photosynthesis")

    asyncio.run(conv.send("How do leaves work?"))

    sent = conv._provider.requests[0].messages[0].content
    assert "Current Learning Context" in sent
    assert "Subject Focus: Plant Biology" in sent
    assert "Topics Mastered: Photosynthesis" in sent
    assert conv.history[0].content == stored_prompt
    assert conv.session_count == 1
    assert len(conv.progress_tracker.interactions) == 1


def test_apply_game_data_subject_change_resets():
    conv = _conversation()
    conv.apply_game_data(GameData(educational_subject=0))
    conv.start()
    conv.add_completed_topic("Crop rotation")
    conv.increment_assessments_completed()

    changed = conv.apply_game_data(GameData(educational_subject=4, use_latest_model=False))

    assert changed is True
    assert conv.subject is SubjectArea.COMPOSTING
    assert conv.history == []
    assert conv.completed_topics == []
    assert conv.assessments_completed == 0
    assert conv.model == LITE_MODEL
    assert "Composting" in conv.initial_message


def test_apply_same_game_data_keeps_history():
    conv = _conversation()
    data = GameData(educational_subject=1)
    conv.apply_game_data(data)
    conv.start()
    assert conv.apply_game_data(data) is False
    assert len(conv.history) == 2


def test_progress_counters_and_reset():
    conv = _conversation()
    assert conv.add_completed_topic("Soil") is True
    assert conv.add_completed_topic("Soil") is False
    assert conv.add_completed_topic("") is False
    conv.increment_checkpoints_reached()
    conv.set_difficulty(LearningDifficulty.ADVANCED)
    assert conv.difficulty is LearningDifficulty.ADVANCED

    conv.reset_educational_progress()
    assert conv.completed_topics == []
    assert conv.checkpoints_reached == 0
    assert conv.session_count == 0

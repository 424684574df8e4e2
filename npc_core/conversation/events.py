"""学习进度事件处理器。

SignalDispatcher 把信号类型映射为 handler 名后在 handlers() 返回的表中查找，
例如 topic_completed -> OnTopicCompleted -> on_topic_completed。
每个 handler 自行解释 data 的结构。
"""

from typing import Any, Callable, Dict, Optional

from npc_core.conversation.educational import EducationalConversation, LearningDifficulty
from npc_core.conversation.signals import SignalHandler
from npc_core.domain.structured import dump_payload
from npc_core.infrastructure.logging.logger import logger

UNLOCK_TOPIC_THRESHOLD = 3


def _field(data: Any, key: str) -> Any:
    if isinstance(data, dict):
        return data.get(key)
    return None


class ConversationEventHandler:
    """把信号转成对 EducationalConversation 进度的更新。

    on_progress 用于把进度摘要交给 UI（例如进度标签），可为空。
    """

    def __init__(
        self,
        conversation: EducationalConversation,
        on_progress: Optional[Callable[[str], None]] = None,
    ):
        self._conversation = conversation
        self._on_progress = on_progress
        self.update_progress_display()

    def handlers(self) -> Dict[str, SignalHandler]:
        return {
            "OnLearningCheckpoint": self.on_learning_checkpoint,
            "OnTopicCompleted": self.on_topic_completed,
            "OnAssessmentQuestion": self.on_assessment_question,
            "OnEncouragement": self.on_encouragement,
            "OnDifficultyAdjustment": self.on_difficulty_adjustment,
            "OnObservationPrompt": self.on_observation_prompt,
            "OnReflectionMoment": self.on_reflection_moment,
            "OnGardenInteraction": self.on_garden_interaction,
            "OnKnowledgeUnlocked": self.on_knowledge_unlocked,
        }

    # ---- handlers ----

    def on_learning_checkpoint(self, data: Any) -> None:
        logger.info("Learning checkpoint reached", extra={"extra": {"data": dump_payload(data)}})
        self._conversation.increment_checkpoints_reached()
        self.update_progress_display()

    def on_topic_completed(self, data: Any) -> None:
        topic_name = _field(data, "topic_name")
        topic = str(topic_name) if topic_name is not None else "(unknown)"
        logger.info("Topic completed", extra={"extra": {"topic": topic}})
        self._conversation.add_completed_topic(topic)
        self._conversation.progress_tracker.mark_topic_completed(topic, self._conversation.subject.value)
        self.update_progress_display()
        self.unlock_new_content()

    def on_assessment_question(self, data: Any) -> None:
        logger.info("Assessment question", extra={"extra": {"data": dump_payload(data)}})
        self._conversation.increment_assessments_completed()
        self.update_progress_display()

    def on_encouragement(self, data: Any) -> None:
        logger.info("Encouragement", extra={"extra": {"data": dump_payload(data)}})

    def on_difficulty_adjustment(self, data: Any) -> None:
        level = _field(data, "difficulty_level") or ""
        logger.info("Difficulty adjustment", extra={"extra": {"level": level}})
        difficulty = LearningDifficulty.parse(level)
        if difficulty is not None:
            self._conversation.set_difficulty(difficulty)

    def on_observation_prompt(self, data: Any) -> None:
        logger.info("Observation prompt", extra={"extra": {"data": dump_payload(data)}})

    def on_reflection_moment(self, data: Any) -> None:
        logger.info("Reflection moment", extra={"extra": {"data": dump_payload(data)}})

    def on_garden_interaction(self, data: Any) -> None:
        logger.info("Garden interaction", extra={"extra": {"data": dump_payload(data)}})

    def on_knowledge_unlocked(self, data: Any) -> None:
        logger.info("Knowledge unlocked", extra={"extra": {"data": dump_payload(data)}})
        self.unlock_new_content()

    # ---- 进度 ----

    def progress_text(self) -> str:
        conv = self._conversation
        return (
            f"Topics: {len(conv.completed_topics)} | "
            f"Assessments: {conv.assessments_completed} | "
            f"Checkpoints: {conv.checkpoints_reached}"
        )

    def update_progress_display(self) -> None:
        if self._on_progress is not None:
            self._on_progress(self.progress_text())

    def unlock_new_content(self) -> bool:
        topics = self._conversation.completed_topics
        if len(topics) >= UNLOCK_TOPIC_THRESHOLD:
            logger.info("Advanced learning modules unlocked", extra={"extra": {"topics": ", ".join(topics)}})
            return True
        return False

    def reset_progress(self) -> None:
        self._conversation.reset_educational_progress()
        self.update_progress_display()

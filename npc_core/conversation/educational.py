"""教学型对话。

在基础对话之上叠加“提示词构造”策略：每次请求时根据会话次数、已掌握主题、
难度等学习状态重写开头的 system 消息，但不修改已存储的历史。
同时维护进度计数，供 ConversationEventHandler 在收到信号时更新。
"""

import re
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from npc_core.conversation.base import Conversation
from npc_core.domain.models import ChatMessage
from npc_core.infrastructure.logging.logger import logger
from npc_core.infrastructure.storage.game_data_store import GameData
from npc_core.providers.base import ChatProvider
from npc_core.providers.registry import model_for_tier


class LearningDifficulty(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"

    @classmethod
    def parse(cls, value: object) -> Optional["LearningDifficulty"]:
        """大小写不敏感地解析，无法识别时返回 None。"""

        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        for level in cls:
            if key in (level.value.lower(), level.name.lower()):
                return level
        return None


class SubjectArea(str, Enum):
    SUSTAINABLE_FARMING = "SustainableFarming"
    PLANT_BIOLOGY = "PlantBiology"
    SOIL_SCIENCE = "SoilScience"
    WATER_MANAGEMENT = "WaterManagement"
    COMPOSTING = "Composting"
    PERMACULTURE = "Permaculture"

    @property
    def label(self) -> str:
        return re.sub(r"(?<!^)(?=[A-Z])", " ", self.value)


def subject_from_index(index: int) -> SubjectArea:
    """设置文件里保存的是下拉框序号；越界时回退到第一个主题。"""

    subjects = list(SubjectArea)
    if 0 <= index < len(subjects):
        return subjects[index]
    logger.warning("Unknown subject index, using default", extra={"extra": {"index": index}})
    return subjects[0]


class LearningProgressTracker:
    """记录学习交互与各主题下已掌握的话题。"""

    def __init__(self) -> None:
        self._completed_by_subject: Dict[str, List[str]] = {}
        self.interactions: List[str] = []

    def record_interaction(self, message: str, subject: str) -> None:
        self.interactions.append(f"{datetime.now():%H:%M:%S} [{subject}]: {message}")
        logger.info("Learning interaction recorded", extra={"extra": {"subject": subject, "message": message[:50]}})

    def mark_topic_completed(self, topic: str, subject: str) -> bool:
        topics = self._completed_by_subject.setdefault(subject, [])
        if topic in topics:
            return False
        topics.append(topic)
        logger.info("Topic mastered", extra={"extra": {"subject": subject, "topic": topic}})
        return True

    def completed_topics(self, subject: str) -> List[str]:
        return list(self._completed_by_subject.get(subject, []))


class EducationalConversation(Conversation):
    def __init__(
        self,
        provider: ChatProvider,
        *,
        subject: SubjectArea = SubjectArea.SUSTAINABLE_FARMING,
        difficulty: LearningDifficulty = LearningDifficulty.BEGINNER,
        use_latest_model: bool = True,
        **kwargs,
    ):
        kwargs.setdefault("model", model_for_tier(use_latest_model))
        super().__init__(provider, **kwargs)
        self.subject = subject
        self.difficulty = difficulty
        self.use_latest_model = use_latest_model
        self.session_count = 0
        self.current_objective = ""
        self.assessments_completed = 0
        self.checkpoints_reached = 0
        self.progress_tracker = LearningProgressTracker()
        self._completed_topics: List[str] = []
        self._applied_subject_index: Optional[int] = None
        if not self.initial_message:
            self.initial_message = self.educational_initial_message()

    # ---- 设置 ----

    def apply_game_data(self, data: GameData) -> bool:
        """同步玩家设置；主题变化时重置对话与进度，返回主题是否变化。"""

        subject_changed = data.educational_subject != self._applied_subject_index
        if subject_changed:
            self._applied_subject_index = data.educational_subject
            self.subject = subject_from_index(data.educational_subject)
            self.reset()
            self.reset_educational_progress()
            self.initial_message = self.educational_initial_message()
            logger.info("Subject changed, conversation and progress reset", extra={"extra": {"subject": self.subject.value}})

        if data.use_latest_model != self.use_latest_model:
            self.use_latest_model = data.use_latest_model
            self.model = model_for_tier(data.use_latest_model)
            logger.info("Model tier changed", extra={"extra": {"model": self.model}})
        return subject_changed

    # ---- 提示词 ----

    def educational_initial_message(self) -> str:
        return (
            f"Welcome to the learning garden! I'm {self.npc_name}. "
            f"Today we're exploring {self.subject.label}. Where would you like to begin?"
        )

    def system_prompt(self) -> str:
        return (
            f"Your name is {self.npc_name}. Your pronouns are {self.npc_pronouns.value}. {self.backstory}\n\n"
            f"EDUCATIONAL CONTEXT: You are teaching {self.subject.label} at {self.difficulty.value} level. "
            f"This is session #{self.session_count + 1}. "
            "Focus on hands-on, practical learning in a garden environment."
        )

    def learning_context_prompt(self) -> str:
        return (
            f"{self.system_prompt()}\n\nCurrent Learning Context:\n"
            f"- Subject Focus: {self.subject.label}\n"
            f"- Student Level: {self.difficulty.value}\n"
            f"- Topics Mastered: {', '.join(self._completed_topics)}\n"
            f"- Session Count: {self.session_count}\n"
            f"- Current Objective: {self.current_objective}\n\n"
            "IMPORTANT: Adapt your teaching style to the learner's demonstrated level. "
            "Use practical examples from the garden environment. Ask follow-up questions to assess understanding. "
            "Provide hands-on activities when appropriate. Always respond with the structured JSON format."
        )

    def build_prompt(self) -> List[ChatMessage]:
        prompt = super().build_prompt()
        if prompt and prompt[0].role == "system":
            prompt[0] = ChatMessage(role="system", content=self.learning_context_prompt())
        return prompt

    # ---- 钩子 ----

    async def before_send(self, player_message: str) -> None:
        self.progress_tracker.record_interaction(player_message, self.subject.value)

    async def after_send(self) -> None:
        self.session_count += 1

    # ---- 进度 ----

    @property
    def completed_topics(self) -> List[str]:
        return list(self._completed_topics)

    def add_completed_topic(self, topic: str) -> bool:
        if not topic or topic in self._completed_topics:
            return False
        self._completed_topics.append(topic)
        logger.info("Topic added to educational conversation", extra={"extra": {"topic": topic}})
        return True

    def increment_assessments_completed(self) -> None:
        self.assessments_completed += 1

    def increment_checkpoints_reached(self) -> None:
        self.checkpoints_reached += 1

    def set_difficulty(self, difficulty: LearningDifficulty) -> None:
        if difficulty is not self.difficulty:
            logger.info(
                "Difficulty adjusted",
                extra={"extra": {"from": self.difficulty.value, "to": difficulty.value}},
            )
        self.difficulty = difficulty

    def reset_educational_progress(self) -> None:
        self.assessments_completed = 0
        self.checkpoints_reached = 0
        self._completed_topics.clear()
        self.session_count = 0
        self.current_objective = ""
        self.progress_tracker = LearningProgressTracker()
        logger.info("Educational progress reset")

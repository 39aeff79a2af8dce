from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from hideseek.actions import ActionResult
from hideseek.api.models import AskedQuestion, CategoryStats, GameSize, Question, QuestionCategoryId
from hideseek.assets.registry import QuestionCatalog, default_catalog
from hideseek.categories import QUESTION_CATEGORIES, QuestionCategory, get_category
from hideseek.core.events import EventBus
from hideseek.deck import PythonRandom, RandomSource
from hideseek.errors import RuleViolation
from hideseek.persistence import PersistenceGateway
from hideseek.serialization import StateCodec
from hideseek.store import Clock, PersistentStore


class QuestionState(BaseModel):
    asked_questions: list[AskedQuestion] = Field(default_factory=list)
    pending_question: AskedQuestion | None = None


QUESTION_CODEC: StateCodec[QuestionState] = StateCodec(QuestionState, schema_version=1)


class QuestionStore(PersistentStore[QuestionState]):
    """Question protocol: one pending question at a time plus the asked history.

    A vetoed question never enters the history, so it can be asked again.
    """

    store_name = "questions"
    codec = QUESTION_CODEC

    def __init__(
        self,
        *,
        persistence: PersistenceGateway,
        catalog: QuestionCatalog | None = None,
        rng: RandomSource | None = None,
        clock: Clock | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.catalog = catalog or default_catalog()
        self._rng = rng or PythonRandom()
        super().__init__(persistence=persistence, clock=clock, bus=bus)

    def _initial_state(self) -> QuestionState:
        return QuestionState()

    # Getters

    @property
    def pending_question(self) -> AskedQuestion | None:
        pending = self._state.pending_question
        return pending.model_copy() if pending is not None else None

    @property
    def has_pending_question(self) -> bool:
        return self._state.pending_question is not None

    @property
    def asked_questions(self) -> list[AskedQuestion]:
        return [q.model_copy() for q in self._state.asked_questions]

    def _asked_ids(self, state: QuestionState | None = None) -> set[str]:
        state = state if state is not None else self._state
        return {q.question_id for q in state.asked_questions}

    def get_question(self, question_id: str) -> Question | None:
        return self.catalog.get(question_id)

    def _available(self, state: QuestionState, category_id: QuestionCategoryId | None) -> list[Question]:
        asked = self._asked_ids(state)
        return [
            q
            for q in self.catalog.questions
            if q.id not in asked and (category_id is None or q.category_id == category_id)
        ]

    def get_available_questions(self, category_id: QuestionCategoryId | None = None) -> list[Question]:
        return self._available(self._state, category_id)

    def get_available_questions_for_game_size(
        self,
        game_size: GameSize,
        category_id: QuestionCategoryId | None = None,
    ) -> list[Question]:
        return [q for q in self.get_available_questions(category_id) if game_size in q.available_in]

    def get_category_stats(self) -> list[CategoryStats]:
        asked = self._asked_ids()
        out: list[CategoryStats] = []
        for category in QUESTION_CATEGORIES:
            in_category = self.catalog.in_category(category.id)
            asked_count = sum(1 for q in in_category if q.id in asked)
            out.append(
                CategoryStats(
                    category_id=category.id,
                    name=category.name,
                    total=len(in_category),
                    available=len(in_category) - asked_count,
                    asked=asked_count,
                    cards_draw=category.cards_draw,
                    cards_keep=category.cards_keep,
                )
            )
        return out

    def response_time_ms(self, game_size: GameSize) -> int | None:
        """Time the hider has to answer the pending question, or None if nothing is pending."""

        pending = self._state.pending_question
        if pending is None:
            return None
        category = get_category(pending.category_id)
        if category is None:
            return None
        return category.response_minutes(game_size) * 60_000

    def response_deadline(self, game_size: GameSize) -> datetime | None:
        pending = self._state.pending_question
        ms = self.response_time_ms(game_size)
        if pending is None or ms is None:
            return None
        return pending.asked_at + timedelta(milliseconds=ms)

    # Guards

    @staticmethod
    def _require_pending(state: QuestionState, question_id: str) -> AskedQuestion:
        pending = state.pending_question
        if pending is None:
            raise RuleViolation("No question is pending")
        if pending.question_id != question_id:
            raise RuleViolation("Question ID does not match pending question")
        return pending

    @staticmethod
    def _require_category(category_id: QuestionCategoryId) -> QuestionCategory:
        category = get_category(category_id)
        if category is None:
            raise RuleViolation("Question category not found")
        return category

    # Operations

    def ask_question(self, question_id: str) -> ActionResult:
        def mutate(state: QuestionState) -> ActionResult:
            if state.pending_question is not None:
                raise RuleViolation("A question is already pending")
            question = self.catalog.get(question_id)
            if question is None:
                raise RuleViolation("Question not found")
            if question_id in self._asked_ids(state):
                raise RuleViolation("Question has already been asked")
            category = self._require_category(question.category_id)

            state.pending_question = AskedQuestion(
                question_id=question.id,
                category_id=question.category_id,
                asked_at=self.now(),
            )
            return ActionResult.ok(cards_draw=category.cards_draw, cards_keep=category.cards_keep)

        return self._apply("ask_question", mutate)

    def answer_question(self, question_id: str, answer: str) -> ActionResult:
        def mutate(state: QuestionState) -> ActionResult:
            pending = self._require_pending(state, question_id)
            state.asked_questions.append(
                pending.model_copy(update={"answer": answer, "answered_at": self.now(), "vetoed": False})
            )
            state.pending_question = None
            return ActionResult.ok()

        return self._apply("answer_question", mutate)

    def veto_question(self, question_id: str) -> ActionResult:
        def mutate(state: QuestionState) -> ActionResult:
            pending = self._require_pending(state, question_id)
            category = self._require_category(pending.category_id)
            # Not recorded as asked: the question stays available.
            state.pending_question = None
            return ActionResult.ok(cards_draw=category.cards_draw, cards_keep=category.cards_keep)

        return self._apply("veto_question", mutate)

    def randomize_question(self, question_id: str, *, game_size: GameSize | None = None) -> ActionResult:
        def mutate(state: QuestionState) -> ActionResult:
            pending = self._require_pending(state, question_id)
            candidates = [
                q
                for q in self._available(state, pending.category_id)
                if q.id != question_id and (game_size is None or game_size in q.available_in)
            ]
            if not candidates:
                raise RuleViolation("No other questions available in this category")

            idx = min(int(self._rng.next() * len(candidates)), len(candidates) - 1)
            chosen = candidates[idx]
            # asked_at is kept so the response clock does not restart.
            state.pending_question = AskedQuestion(
                question_id=chosen.id,
                category_id=chosen.category_id,
                asked_at=pending.asked_at,
            )
            return ActionResult.ok(new_question_id=chosen.id)

        return self._apply("randomize_question", mutate)

    def reset(self) -> None:
        self._reset_state()

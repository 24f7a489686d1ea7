"""
Tests for the generation layer. The LLM is replaced by FakeLLM.
"""

import json

import pytest

from brainary.state.exam import UserAnswer
from brainary.tutor.generator import (
    GenerationError, build_feedback_prompt, build_question_prompt, explain_topic,
    generate_exam_questions, generate_feedback, generate_study_plan, parse_questions,
)

from conftest import FakeLLM


def _payload(*items):
    return json.dumps({"questions": list(items)})


GOOD = {"question": "2+2?", "options": ["3", "4", "5", "6"], "correctAnswer": "4"}
BAD_ANSWER = {"question": "Sky?", "options": ["red", "green", "pink", "grey"], "correctAnswer": "blue"}
THREE_OPTIONS = {"question": "Q?", "options": ["a", "b", "c"], "correctAnswer": "a"}


class TestParseQuestions:
    def test_valid_payload(self):
        questions = parse_questions(_payload(GOOD))
        assert len(questions) == 1
        assert questions[0].correct_answer == "4"

    def test_contract_violations_dropped(self):
        questions = parse_questions(_payload(GOOD, BAD_ANSWER, THREE_OPTIONS, {"question": "no options"}))
        assert [q.question for q in questions] == ["2+2?"]

    def test_bare_list_accepted(self):
        assert len(parse_questions(json.dumps([GOOD, GOOD]))) == 2

    def test_garbage_returns_empty(self):
        assert parse_questions("not json at all") == []

    def test_wrong_shape_returns_empty(self):
        assert parse_questions(json.dumps({"questions": "nope"})) == []


class TestGenerateExamQuestions:
    @pytest.mark.asyncio
    async def test_returns_questions_and_asks_json(self):
        llm = FakeLLM(text=_payload(GOOD, GOOD, GOOD))
        questions = await generate_exam_questions("Basic Math", "3", 3, 7, llm=llm)
        assert len(questions) == 3
        messages, kwargs = llm.calls[0]
        assert kwargs == {"json_mode": True}
        assert "level 7" in messages[-1]["content"]

    @pytest.mark.asyncio
    async def test_truncates_to_requested_count(self):
        llm = FakeLLM(text=_payload(*[GOOD] * 8))
        assert len(await generate_exam_questions("Basic Math", "3", 5, 1, llm=llm)) == 5

    @pytest.mark.asyncio
    async def test_service_error_returns_empty(self):
        llm = FakeLLM(error=RuntimeError("rate limited"))
        assert await generate_exam_questions("Physics", "11", 5, 2, llm=llm) == []


class TestGenerateFeedback:
    RESULTS = [UserAnswer("2+2?", "5", "4", False)]

    @pytest.mark.asyncio
    async def test_returns_text(self):
        llm = FakeLLM(text="## Summary\nGood effort")
        text = await generate_feedback("Basic Math", "3", self.RESULTS, 0, 1, llm=llm)
        assert text.startswith("## Summary")

    @pytest.mark.asyncio
    async def test_error_raises_generation_error(self):
        with pytest.raises(GenerationError):
            await generate_feedback("Basic Math", "3", self.RESULTS, 0, 1, llm=FakeLLM(error=TimeoutError()))

    @pytest.mark.asyncio
    async def test_empty_text_is_a_failure(self):
        with pytest.raises(GenerationError):
            await generate_feedback("Basic Math", "3", self.RESULTS, 0, 1, llm=FakeLLM(text=""))

    def test_prompt_includes_score_and_answers(self):
        prompt = build_feedback_prompt("History", "9", self.RESULTS, 0, 1)
        assert "0/1" in prompt
        assert '"chosen_answer": "5"' in prompt


class TestExplainTopic:
    @pytest.mark.asyncio
    async def test_explanation(self):
        llm = FakeLLM(text="Photosynthesis is how plants eat.")
        assert "plants" in await explain_topic("Photosynthesis", "Biology", "7", llm=llm)

    @pytest.mark.asyncio
    async def test_failure(self):
        with pytest.raises(GenerationError):
            await explain_topic("Photosynthesis", "Biology", "7", llm=FakeLLM(error=RuntimeError()))


def test_question_prompt_mentions_scale_and_format():
    prompt = build_question_prompt("Chemistry", "10", 5, 12)
    assert "5-question" in prompt
    assert "level 12" in prompt and "43" in prompt
    assert "correctAnswer" in prompt


class TestStudyPlan:
    @pytest.mark.asyncio
    async def test_plan_text(self):
        llm = FakeLLM(text="## Week 1\n- Vectors")
        plan = await generate_study_plan("Physics", "11", "Master mechanics", "2 weeks", llm=llm)
        assert plan.startswith("## Week 1")
        prompt = llm.calls[0][0][-1]["content"]
        assert "Master mechanics" in prompt and "2 weeks" in prompt and "grade 11" in prompt

    @pytest.mark.asyncio
    async def test_failure(self):
        with pytest.raises(GenerationError):
            await generate_study_plan("Physics", "11", "Optics", "1 week", llm=FakeLLM(error=RuntimeError()))

    @pytest.mark.asyncio
    async def test_empty_text_is_a_failure(self):
        with pytest.raises(GenerationError):
            await generate_study_plan("Physics", "11", "Optics", "1 week", llm=FakeLLM(text=""))

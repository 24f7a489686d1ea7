"""
Brainary — Content Generation
Question sets, exam feedback, topic explanations and study plans, all delegated to the LLM.

Contracts:
- generate_exam_questions never raises. An empty list means "try again".
- generate_feedback, explain_topic and generate_study_plan raise GenerationError
  on failure so the caller can keep the student's state and offer a retry.
"""

import json
import logging
from typing import Optional, Sequence

from brainary.config import MAX_DIFFICULTY, OPTIONS_PER_QUESTION
from brainary.state.exam import Question, UserAnswer
from brainary.tutor.llm import LLMProvider, get_llm

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """The generation service failed or returned nothing usable."""


SYSTEM_PROMPT = (
    "You are Brainary, a patient and encouraging tutor for school and "
    "vocational students. Keep language appropriate for the student's grade."
)


def _messages(prompt: str) -> list[dict]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


# ─── Questions ───────────────────────────────────────────────────────────────

def build_question_prompt(subject: str, grade_level: str, count: int, difficulty: int) -> str:
    return (
        f"Generate a {count}-question multiple-choice quiz on the subject of {subject} "
        f"for a student in grade {grade_level}. "
        f"The difficulty is level {difficulty} on a scale from 1 (easiest) to {MAX_DIFFICULTY} (hardest). "
        f"For each question, provide exactly {OPTIONS_PER_QUESTION} distinct options, and the "
        f"correct answer must be copied exactly from one of the options.\n"
        'Respond with JSON only: {"questions": [{"question": str, "options": [str, ...], '
        '"correctAnswer": str}]}'
    )


def parse_questions(raw: str) -> list[Question]:
    """
    Parse the model's JSON into Questions.

    Items that break the contract (wrong option count, correct answer not
    among the options, missing fields) are dropped.
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        logger.error(f"Question JSON unparseable: {e}")
        return []

    items = payload.get("questions") if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        return []

    questions = []
    for item in items:
        try:
            questions.append(Question.from_dict(item))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Dropping invalid generated question: {e}")
    return questions


async def generate_exam_questions(
    subject: str,
    grade_level: str,
    count: int,
    difficulty: int,
    llm: Optional[LLMProvider] = None,
) -> list[Question]:
    llm = llm or get_llm()
    prompt = build_question_prompt(subject, grade_level, count, difficulty)
    try:
        result = await llm.generate(_messages(prompt), json_mode=True)
    except Exception as e:
        logger.error(f"Error generating exam for {subject} (level {difficulty}): {e}")
        return []

    questions = parse_questions(result.text)[:count]
    logger.info(f"Generated {len(questions)}/{count} questions for {subject} at level {difficulty}")
    return questions


# ─── Feedback ────────────────────────────────────────────────────────────────

def build_feedback_prompt(
    subject: str,
    grade_level: str,
    results: Sequence[UserAnswer],
    score: int,
    total: int,
) -> str:
    graded = json.dumps([r.to_dict() for r in results], ensure_ascii=False)
    return (
        f"A student in grade {grade_level} took a quiz on {subject}. "
        f"Their final score was {score}/{total}.\n"
        f"Here are the questions, their chosen answers, and the correct answers: {graded}.\n"
        "Based on their incorrect answers, provide a constructive and encouraging report.\n"
        "1. Give a brief, positive summary of their performance.\n"
        "2. Identify the key topics where they struggled based on the incorrect answers.\n"
        "3. Provide 3 specific, actionable tips, study techniques, or simple explanations "
        "for the difficult topics to help them improve.\n"
        "Keep the tone positive and motivating, like a helpful tutor. Format the response in markdown."
    )


async def generate_feedback(
    subject: str,
    grade_level: str,
    results: Sequence[UserAnswer],
    score: int,
    total: int,
    llm: Optional[LLMProvider] = None,
) -> str:
    llm = llm or get_llm()
    prompt = build_feedback_prompt(subject, grade_level, results, score, total)
    try:
        result = await llm.generate(_messages(prompt))
    except Exception as e:
        raise GenerationError(f"Feedback generation failed: {e}") from e
    if not result.text:
        raise GenerationError("Feedback generation returned no text")
    return result.text


# ─── Topic Explanation (AI tutor) ────────────────────────────────────────────

async def explain_topic(
    topic: str,
    subject: str,
    grade_level: str,
    llm: Optional[LLMProvider] = None,
) -> str:
    llm = llm or get_llm()
    prompt = (
        f'Explain the topic "{topic}" for a student in grade {grade_level} who is studying {subject}. '
        "Explain it in a simple, engaging, and step-by-step way. Use analogies and examples that a "
        "student of this age would understand. Format your response nicely using markdown, for "
        "example, use headings, bold text, and lists."
    )
    try:
        result = await llm.generate(_messages(prompt))
    except Exception as e:
        raise GenerationError(f"Explanation failed: {e}") from e
    if not result.text:
        raise GenerationError("Explanation returned no text")
    return result.text


# ─── Study Plan ──────────────────────────────────────────────────────────────

def build_study_plan_prompt(subject: str, grade_level: str, goal: str, duration: str) -> str:
    return (
        f"Create a personalized study plan for a student in grade {grade_level} studying {subject}. "
        f'Their learning goal is: "{goal}". They have {duration} to reach it.\n'
        "Break the plan into clear steps or days. For each step, name the topics to cover, "
        "a short activity or practice task, and how to check their understanding. "
        "Keep it realistic for the time available and encouraging in tone. "
        "Format the response in markdown with headings and lists."
    )


async def generate_study_plan(
    subject: str,
    grade_level: str,
    goal: str,
    duration: str,
    llm: Optional[LLMProvider] = None,
) -> str:
    llm = llm or get_llm()
    prompt = build_study_plan_prompt(subject, grade_level, goal, duration)
    try:
        result = await llm.generate(_messages(prompt))
    except Exception as e:
        raise GenerationError(f"Study plan failed: {e}") from e
    if not result.text:
        raise GenerationError("Study plan returned no text")
    logger.info(f"Study plan generated for {subject} ({duration})")
    return result.text

"""Prompts for question generation, essay grading and study material."""

LANGUAGE_NOTE = "Write all content in Brazilian Portuguese."

DIFFICULTY_INSTRUCTIONS: dict[str, str] = {
    "easy": """\
BASIC level:
- Focus on fundamental concepts and definitions
- Simple, direct clinical cases
- Clear options without elaborate traps
- Linear reasoning, no multi-step inference""",
    "medium": """\
INTERMEDIATE level:
- Practical clinical application
- Cases with relevant clinical data
- Requires integrating knowledge
- Distinguish between plausible options""",
    "hard": """\
HARD level (ENARE/USP/UNIFESP style):
- COMPLEX clinical case with multiple comorbidities
- ATYPICAL presentation of the disease
- CONFLICTING data that requires critical analysis
- Therapeutic decisions under UNCERTAINTY
- Very close options: all technically defensible, one is MOST appropriate
- Tests ADVANCED clinical reasoning, not memorisation""",
}

QUESTION_SYSTEM_PROMPT = (
    "You are a medical education specialist who writes questions for Brazilian "
    "medical-residency exams. Respond only with valid JSON, no extra text."
)

OBJECTIVE_QUESTION_PROMPT = """\
Write a multiple-choice question about {specialty} at the following level:
{difficulty_instructions}

Requirements:
- Realistic, detailed clinical case (history, physical exam, complementary tests)
- Exactly 5 options (A-E)
- Format of the main Brazilian residency exams

{language_note}

Respond ONLY with a JSON object:
{{
    "question": "<question text with the full clinical case>",
    "options": ["<A>", "<B>", "<C>", "<D>", "<E>"],
    "correctAnswerIndex": <0-4>,
    "explanation": "<why the correct option is best and why the others are not>"
}}
"""

DISSERTATIVE_SYSTEM_PROMPT = (
    "You are a medical education specialist who writes open-ended questions "
    "for Brazilian medical-residency exams."
)

DISSERTATIVE_QUESTION_PROMPT = """\
Write one open-ended (essay) question about {specialty} at the following level:
{difficulty_instructions}

The question must present a clinical case and ask for diagnosis, reasoning and
management. Respond with the question text only.

{language_note}
"""

GRADER_SYSTEM_PROMPT = (
    "You are an experienced medicine professor grading essay answers. "
    "Respond only with valid JSON, no extra text."
)

GRADER_PROMPT = """\
Grade the student's answer to the question below.

QUESTION:
{question}

STUDENT ANSWER:
{answer}

Consider:
1. Correctness of the medical concepts
2. Completeness
3. Organisation and clarity
4. Practical application
5. Fit to the specialty of {specialty}

{language_note}

Respond ONLY with a JSON object:
{{
    "score": <0-100>,
    "strengths": "<strengths of the answer>",
    "improvements": "<what can be improved>",
    "detailedFeedback": "<detailed feedback with concepts to study further>"
}}
"""

MATERIAL_SYSTEM_PROMPT = (
    "You are a medicine professor who writes study material for residency "
    "preparation. Respond only with valid JSON, no extra text."
)

MATERIAL_PROMPT = """\
Write complete study material on {specialty}, focusing on these topics the
student needs to reinforce: {topics}.

The material must be didactic, well structured, with clinical examples and
highlighted key points. Include 3 to 5 sections.

{language_note}

Respond ONLY with a JSON object:
{{
    "title": "<title>",
    "introduction": "<introduction>",
    "sections": [
        {{"title": "<section title>", "content": "<3-4 paragraphs>",
          "keyPoints": ["<key point>", "<key point>"]}}
    ],
    "summary": "<closing summary>",
    "references": ["<reference>"]
}}
"""


def difficulty_instructions(difficulty: str) -> str:
    """Instructions for a difficulty tier; unknown tiers use ``medium``."""
    return DIFFICULTY_INSTRUCTIONS.get(difficulty, DIFFICULTY_INSTRUCTIONS["medium"])

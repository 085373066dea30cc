"""LLM prompt templates for question generation."""

# Common instruction to suppress thinking and ensure JSON-only output
# Note: curly braces must be escaped as {{ }} for str.format templates
JSON_ARRAY_ONLY_INSTRUCTION = """
CRITICAL: You MUST respond with ONLY a valid JSON array.
- Do NOT include any thinking, reasoning, or explanation.
- Do NOT use markdown code blocks.
- Start your response directly with the opening bracket
- No text before or after the JSON."""

DIFFICULTY_INSTRUCTIONS = {
    "Easy": (
        "Focus on basic facts, definitions, and simple recall. "
        "Questions should be straightforward with clearly correct answers."
    ),
    "Medium": (
        "Include some analysis and application questions. "
        "Mix factual recall with understanding and basic reasoning."
    ),
    "Hard": (
        "Emphasize critical thinking, analysis, synthesis, and complex reasoning. "
        "Include questions that require deeper understanding."
    ),
}

CONTENT_TYPE_HINTS = {
    "document": "This is from a document. Focus on key concepts, definitions, and main ideas presented in the text.",
    "link": "This is from a web page or video transcript. Focus on the key points and explanations it presents.",
    "topic": "This is a topic description. Create questions that test general knowledge about this subject.",
    "mixed": "This content comes from multiple sources. Create diverse questions covering different aspects.",
}

QUESTION_GENERATION_PROMPT = """You are an expert quiz creator. {language_instruction}Generate exactly {number_of_questions} unique, varied multiple-choice questions based on the content below.

DIFFICULTY LEVEL: {difficulty}
{difficulty_instruction}

CONTENT TYPE: {content_type}
{content_type_hint}

REQUIREMENTS:
1. Each question must have exactly 4 distinct options
2. Only one option should be correct
3. Questions should be clear, unambiguous, and end with a question mark where natural
4. Make incorrect options plausible but clearly wrong
5. Mix question types (factual, analytical, application)
6. VARY THE CORRECT ANSWER POSITION across the batch:
   - Spread correct answers across A, B, C and D
   - No single letter may be correct for more than half of the questions
   - Avoid giving consecutive questions the same correct letter

FORMAT: Return a JSON array with this exact structure:
[
  {{
    "question": "Your question here?",
    "options": ["First option text", "Second option text", "Third option text", "Fourth option text"],
    "correctAnswer": "A",
    "explanation": "Brief explanation of why this is correct",
    "topic": "Main topic of the question"
  }}
]

Do NOT include A), B), C), D) prefixes in the option text.
""" + JSON_ARRAY_ONLY_INSTRUCTION + """

CONTENT TO BASE QUESTIONS ON:
---
{content}
---

Generate exactly {number_of_questions} questions now:"""

# Shorter prompt used for the single retry after unparseable output
COMPACT_QUESTION_GENERATION_PROMPT = """{language_instruction}Write exactly {number_of_questions} {difficulty} multiple-choice questions about the content below.

Return ONLY a JSON array. Each element:
{{"question": "...?", "options": ["...", "...", "...", "..."], "correctAnswer": "A|B|C|D", "explanation": "..."}}
Use different correct letters across questions. No markdown, no text outside the array.

CONTENT:
{content}"""


def language_instruction(language: str) -> str:
    """Instruction prefix for non-English output, empty for English."""
    if language == "English":
        return ""
    return f"Generate all questions, options and explanations in {language}. "

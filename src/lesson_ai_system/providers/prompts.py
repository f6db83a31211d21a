"""Prompt construction shared by the provider adapters."""

from typing import Dict, List, Optional

from lesson_ai_system.schemas.lesson import GenerationRequest

LESSON_SYSTEM_PROMPT = (
    "You are an expert educational content creator specializing in creating "
    "structured, engaging lessons."
)
REVIEW_SYSTEM_PROMPT = (
    "You are an expert content reviewer focused on educational appropriateness and quality."
)
EXPLANATION_SYSTEM_PROMPT = (
    "You are a helpful educational assistant providing clear, concise explanations."
)

LESSON_JSON_SCHEMA = """{{
  "title": "Lesson title",
  "subject": "Subject name",
  "topic": "{topic}",
  "targetGrade": {grade},
  "difficulty": "{difficulty}",
  "duration": "number (in minutes)",
  "prerequisites": ["prerequisite1", "prerequisite2"],
  "keyConcepts": ["concept1", "concept2"],
  "sections": [
    {{
      "id": "unique-id",
      "title": "Section title",
      "content": "Section content in markdown format",
      "order": "number",
      "type": "introduction|content|summary|practice"
    }}
  ],
  "exercises": [
    {{
      "id": "unique-id",
      "question": "Question text",
      "type": "multiple-choice|open-ended|true-false|coding",
      "difficulty": "easy|medium|hard",
      "answer": "Correct answer",
      "options": ["option1", "option2"],
      "points": "number",
      "hint": "Optional hint",
      "explanation": "Answer explanation"
    }}
  ],
  "resources": [
    {{
      "id": "unique-id",
      "type": "video|document|code|link",
      "url": "resource-url",
      "title": "Resource title",
      "description": "Optional description"
    }}
  ],
  "metadata": {{
    "estimatedDuration": "number",
    "readingLevel": "string",
    "tags": ["tag1", "tag2"]
  }}
}}"""

REVIEW_PROMPT = (
    "Please review the following educational content for appropriateness, bias, and "
    "complexity. Respond in JSON format with fields: isAppropriate (boolean), "
    "confidenceScore (0-1), flags (array of objects with type "
    "profanity|bias|sensitivity|complexity, severity low|medium|high and explanation), "
    "and suggestions (array of improvement ideas).\n\nContent to review:\n{content}"
)

IMAGE_ANALYSIS_PROMPT = (
    "{prompt}\n\nRespond in JSON format with fields: description (string), labels "
    "(array of strings), objects (array of {{name, confidence}}), safeSearch "
    "({{adult, violence, racy}} booleans) and textDetection (text visible in the image, "
    "or null)."
)


def _request_lines(request: GenerationRequest) -> str:
    lines = [
        f"Subject: {request.subject}",
        f"Topic: {request.topic}",
        f"Grade Level: {request.target_grade}",
        f"Length: {request.lesson_length}",
    ]
    if request.difficulty:
        lines.append(f"Difficulty: {request.difficulty}")
    if request.additional_instructions:
        lines.append(f"Additional Instructions: {request.additional_instructions}")
    return "\n".join(lines)


def build_lesson_prompt(request: GenerationRequest, multimedia: bool = False) -> str:
    """User prompt asking for one lesson as JSON."""
    schema = LESSON_JSON_SCHEMA.format(
        topic=request.topic,
        grade=request.target_grade,
        difficulty=request.difficulty or "beginner",
    )
    if multimedia:
        opening = (
            "Create an engaging, multimedia-rich lesson plan with the following specifications:"
        )
        emphasis = (
            "Include multimedia resources (videos, documents, diagrams) and visual aids "
            "wherever they help understanding."
        )
    else:
        opening = "Create a detailed lesson plan with the following specifications:"
        emphasis = "Use clear language and include practical examples."

    return (
        f"{opening}\n\n{_request_lines(request)}\n\n"
        f"Please provide the response in JSON format with the following structure:\n{schema}\n\n"
        f"Ensure the content is age-appropriate and engaging for grade {request.target_grade}. "
        f"{emphasis}"
    )


def lesson_messages(request: GenerationRequest, multimedia: bool = False) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": LESSON_SYSTEM_PROMPT},
        {"role": "user", "content": build_lesson_prompt(request, multimedia=multimedia)},
    ]


def review_messages(content: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": REVIEW_SYSTEM_PROMPT},
        {"role": "user", "content": REVIEW_PROMPT.format(content=content)},
    ]


def explanation_messages(query: str, context: Optional[str] = None) -> List[Dict[str, str]]:
    prompt = f"Context: {context}\n\nQuestion: {query}" if context else query
    return [
        {"role": "system", "content": EXPLANATION_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def image_analysis_prompt(prompt: str) -> str:
    return IMAGE_ANALYSIS_PROMPT.format(prompt=prompt)

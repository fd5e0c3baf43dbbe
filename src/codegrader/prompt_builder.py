# src/codegrader/prompt_builder.py
#
# Prompt construction (no OpenAI call here).
#
# Templates use {{code}}, {{linter_output}} and {{assignment_context}}
# placeholders, substituted by render_prompt() right before the call.
#
# Prompts produced here:
#   - criteria prompt: asks yes/no/unsure for each catalog item + line comments
#   - custom prompt:   instructor text wrapped around the code
#   - suggestions:     proposes new catalog items from a sample of submissions

from __future__ import annotations

import json
from typing import Dict, List, Sequence

from .models import FeedbackItem

CODE_PLACEHOLDER = "{{code}}"
LINTER_PLACEHOLDER = "{{linter_output}}"
CONTEXT_PLACEHOLDER = "{{assignment_context}}"

SUGGESTION_SAMPLE_LIMIT = 10
SUGGESTION_SNIPPET_CHARS = 500


def render_prompt(template: str, code: str, linter_output: str = "", assignment_context: str = "") -> str:
    """Substitute every placeholder occurrence in `template`."""
    return (
        (template or "")
        .replace(CODE_PLACEHOLDER, code or "")
        .replace(LINTER_PLACEHOLDER, linter_output or "")
        .replace(CONTEXT_PLACEHOLDER, assignment_context or "")
    )


def _expected_output_template(items: Sequence[FeedbackItem]) -> str:
    responses: Dict[str, str] = {}
    for i, item in enumerate(items):
        responses[str(item.id)] = ("yes", "no", "unsure")[i % 3]

    template = {
        "line_comments": {"3": "Example comment for line 3"},
        "overall_comments": ["Brief overall assessment"],
        "feedback_responses": responses,
        "reasoning": "Explanation of your assessment for each feedback criterion",
    }
    return json.dumps(template, indent=2, ensure_ascii=False)


def build_criteria_prompt(items: Sequence[FeedbackItem]) -> str:
    """
    Default commentary prompt: evaluate each catalog item against the code.

    The returned text is a template; the code is inserted by render_prompt().
    """
    criteria = "\n".join(f'{item.id}. "{item.comment}"' for item in items)

    return "\n".join(
        [
            "You are a computer science grading assistant. Analyze the following Python code "
            "submission and evaluate it against specific feedback criteria.",
            "",
            'For each feedback criterion below, respond with "yes", "no", or "unsure":',
            "- **yes**: The feedback clearly applies to this code",
            "- **no**: The feedback does NOT apply to this code",
            "- **unsure**: You're not certain whether this feedback applies",
            "",
            "Feedback criteria to evaluate:",
            criteria,
            "",
            "Assignment: " + CONTEXT_PLACEHOLDER,
            "",
            "Code:",
            "```python",
            CODE_PLACEHOLDER,
            "```",
            "",
            "Respond ONLY with valid JSON in this exact format:",
            _expected_output_template(items),
            "",
            "Guidelines:",
            "- Be objective and specific in your evaluation",
            '- Only mark "yes" if the feedback clearly and definitely applies',
            '- Use "unsure" when the feedback might apply but you need more context',
            "- Provide brief, helpful line_comments for specific issues",
            "- Keep overall_comments concise and constructive",
        ]
    )


def build_custom_prompt(custom_prompt: str) -> str:
    """Wrap instructor-written instructions so the reply stays machine-parseable."""
    if custom_prompt is None or not str(custom_prompt).strip():
        raise ValueError("Custom prompt is missing/empty.")

    return (
        custom_prompt.strip()
        + "\n\nCode to evaluate:\n```python\n"
        + CODE_PLACEHOLDER
        + "\n```\n\n"
        + 'Provide your evaluation as JSON: {"overall_comments": ["comment1"], '
        + '"line_comments": {"1": "comment"}, "reasoning": "explanation"}'
    )


def build_suggestion_prompt(code_samples: Sequence[str]) -> str:
    """Ask for 3-5 new catalog items based on (truncated) sample submissions."""
    samples: List[str] = [c for c in code_samples if c][:SUGGESTION_SAMPLE_LIMIT]
    blocks = "\n".join(
        f"\n--- Student {idx + 1} ---\n{code[:SUGGESTION_SNIPPET_CHARS]}\n"
        for idx, code in enumerate(samples)
    )

    return (
        f"You are a computer science grading assistant. Analyze these {len(samples)} student code "
        "submissions and suggest 3-5 new feedback criteria that would be useful for grading.\n\n"
        f"Code samples:\n{blocks}\n"
        "Respond ONLY with valid JSON in this format:\n"
        "{\n"
        '  "suggestions": [\n'
        '    {"comment": "Brief feedback criterion", "grade": 2},\n'
        '    {"comment": "Another feedback criterion", "grade": 3}\n'
        "  ],\n"
        '  "reasoning": "Why these criteria would be useful"\n'
        "}\n\n"
        "Focus on common patterns, issues, or good practices you observe across submissions."
    )

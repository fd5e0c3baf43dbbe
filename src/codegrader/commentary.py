# src/codegrader/commentary.py
#
# AI code commentary: render prompt -> call model -> parse JSON reply.
#
# The model reply is expected to look like:
#   {
#     "line_comments": {"<line>": "<comment>", ...},
#     "overall_comments": ["...", ...],
#     "feedback_responses": {"<feedback id>": "yes" | "no" | "unsure", ...},   (optional)
#     "reasoning": "..."                                                         (optional)
#   }
#
# Parsing is lenient about surrounding prose (the first {...} span is taken)
# and about individual bad entries (skipped), but a reply with no parseable
# JSON object raises MalformedResponseError.

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .exceptions import LLMError, MalformedResponseError
from .llm import LLMClient
from .prompt_builder import build_suggestion_prompt, render_prompt

logger = logging.getLogger(__name__)

FEEDBACK_RESPONSES = ("yes", "no", "unsure")

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


@dataclass
class Commentary:
    line_comments: Dict[int, str] = field(default_factory=dict)
    overall_comments: List[str] = field(default_factory=list)
    static_analysis_output: str = ""
    feedback_responses: Dict[int, str] = field(default_factory=dict)
    reasoning: Optional[str] = None

    def applicable_ids(self) -> List[int]:
        """Feedback ids the model answered "yes" for."""
        return sorted(i for i, r in self.feedback_responses.items() if r == "yes")


@dataclass(frozen=True)
class SuggestedFeedback:
    comment: str
    grade: float


# -----------------------------
# Parsing
# -----------------------------

def _parse_json_object(text: str) -> Dict[str, Any]:
    if not isinstance(text, str) or not text.strip():
        raise MalformedResponseError("No response content from LLM")

    m = _JSON_OBJECT_RE.search(text)
    candidate = m.group(0) if m else text.strip()
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        snippet = candidate[:400].replace("\n", "\\n")
        logger.error("Failed to parse LLM response as JSON: %s", snippet)
        raise MalformedResponseError(
            f"LLM response is not valid JSON format: {e.msg} (pos {e.pos})"
        ) from e

    if not isinstance(parsed, dict):
        raise MalformedResponseError("Top-level JSON must be an object (dictionary).")
    return parsed


def _int_key(key: Any) -> Optional[int]:
    try:
        return int(str(key).strip())
    except ValueError:
        return None


def parse_commentary(text: str, linter_output: str = "") -> Commentary:
    obj = _parse_json_object(text)

    line_comments: Dict[int, str] = {}
    raw_lines = obj.get("line_comments")
    if isinstance(raw_lines, dict):
        for k, v in raw_lines.items():
            line = _int_key(k)
            if line is not None and isinstance(v, str):
                line_comments[line] = v

    raw_overall = obj.get("overall_comments")
    overall = [c for c in raw_overall if isinstance(c, str)] if isinstance(raw_overall, list) else []

    responses: Dict[int, str] = {}
    raw_responses = obj.get("feedback_responses")
    if isinstance(raw_responses, dict):
        for k, v in raw_responses.items():
            item_id = _int_key(k)
            if item_id is not None and v in FEEDBACK_RESPONSES:
                responses[item_id] = v

    reasoning = obj.get("reasoning")
    return Commentary(
        line_comments=line_comments,
        overall_comments=overall,
        static_analysis_output=linter_output or "",
        feedback_responses=responses,
        reasoning=reasoning if isinstance(reasoning, str) else None,
    )


def parse_suggestions(text: str) -> List[SuggestedFeedback]:
    obj = _parse_json_object(text)
    raw = obj.get("suggestions")
    if not isinstance(raw, list):
        raise MalformedResponseError("suggestions must be a list of {comment, grade} objects.")

    out: List[SuggestedFeedback] = []
    for s in raw:
        if not isinstance(s, dict):
            continue
        comment = s.get("comment")
        if not isinstance(comment, str) or not comment.strip():
            comment = "AI-suggested feedback"
        grade = s.get("grade")
        if isinstance(grade, bool) or not isinstance(grade, (int, float)) or grade < 0:
            grade = 0
        out.append(SuggestedFeedback(comment=comment.strip(), grade=float(grade)))
    return out


# -----------------------------
# Calls
# -----------------------------

def generate_commentary(
    client: LLMClient,
    code: str,
    linter_output: str,
    prompt_template: str,
    assignment_context: str = "",
) -> Commentary:
    """
    Render `prompt_template` with the code and ask the model for commentary.

    Raises LLMError subclasses (authentication, rate limit, server, malformed response).
    """
    prompt = render_prompt(prompt_template, code, linter_output, assignment_context)
    resp = client.generate(user_prompt=prompt)
    logger.debug("Commentary response %s from %s", resp.response_id, resp.model)
    return parse_commentary(resp.text, linter_output)


def suggest_feedback(client: LLMClient, code_samples: Sequence[str]) -> List[SuggestedFeedback]:
    prompt = build_suggestion_prompt(code_samples)
    resp = client.generate(user_prompt=prompt)
    return parse_suggestions(resp.text)


CONNECTION_TEST_PROMPT = (
    'Analyze this code and respond with JSON: '
    '{"line_comments": {}, "overall_comments": ["Test successful"]}\n\n{{code}}'
)


def test_connection(client: LLMClient) -> Optional[str]:
    """Round-trip a trivial prompt. Returns an error message, or None on success."""
    try:
        result = generate_commentary(client, 'print("Hello, World!")', "No issues found.", CONNECTION_TEST_PROMPT)
    except LLMError as e:
        return str(e)
    if "Test successful" in result.overall_comments:
        return None
    return "Unexpected response from LLM"


test_connection.__test__ = False  # not a pytest test despite the name

"""
Prompt construction and defensive parsing of reasoning-service replies.

Replies are parsed "structured-with-fallback": strict JSON first, then the
same text with markdown fences stripped, then the outermost {...} block.
Only when all three fail is the reply treated as malformed.
"""

import json
import re
from typing import Any, Dict, List

from ..errors import MalformedResponseError
from ..schema import Rating, VerdictPayload

INTERACTION_PROMPT = """You are a highly knowledgeable pharmacology expert.
Analyze the following two drugs for potential interactions or cross-reactions.

Drug 1:
{drug_a}

Drug 2:
{drug_b}

Please respond in JSON format with the following fields:
{{
  "summary": "A short summary of the interaction",
  "rating": "One of: 'Safe', 'Warning', or 'Prohibited'",
  "details": "Additional explanation and usage considerations"
}}

Use the following guidelines to decide the 'rating':
- "Safe": The interaction poses minimal clinical risk.
  Any potential side effects are mild enough that most patients could tolerate them without significant medical intervention.
  Examples: Mild GI discomfort, slight headache, or minor fatigue that typically resolves without seeing a doctor.

- "Warning": The interaction is moderate and may cause notable symptoms or complications that could seriously affect quality of life if not addressed.
  Seeking medical advice is recommended, but this combination is not necessarily life-threatening if monitored properly.
  Examples: Moderate GI bleeding risk, potential for organ function compromise that requires medical follow-up, or severe allergic reaction (but manageable with timely intervention).

- "Prohibited": The interaction is severe or potentially life-threatening.
  Using these two drugs together could lead to hospitalization or result in permanent damage, significant disability, or even death.
  Examples: Drugs that cause fatal cardiac arrhythmias, major organ failure, or extremely high hemorrhage risk when combined.

Important:
- Return a valid JSON object with no additional text or code fencing.
- Do not wrap the JSON in triple backticks or any Markdown code block.
- Do not include any extra keys or text outside the JSON object.
- Keep your response concise and strictly follow the above format."""

_FENCE_RE = re.compile(r"```[a-zA-Z0-9_-]*\s*(.*?)\s*```", re.DOTALL)


def build_interaction_prompt(description_a: str, description_b: str) -> str:
    return INTERACTION_PROMPT.format(drug_a=description_a.strip(), drug_b=description_b.strip())


def strip_code_fences(text: str) -> str:
    """Return the body of the first fenced block, or the text minus stray fences."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.replace("```json", "").replace("```", "").strip()


def _candidates(raw: str) -> List[str]:
    text = raw.strip()
    out = [text]
    unfenced = strip_code_fences(text)
    if unfenced != text:
        out.append(unfenced)
    start, end = unfenced.find("{"), unfenced.rfind("}")
    if 0 <= start < end:
        out.append(unfenced[start:end + 1])
    return out


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return "\n".join(_as_text(v) for v in value if v is not None)
    return str(value)


def parse_verdict(raw: str) -> VerdictPayload:
    """Parse a reply into a VerdictPayload.

    Raises:
        MalformedResponseError: no JSON object could be recovered from the reply
    """
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedResponseError("Empty reply from reasoning service", raw=raw if isinstance(raw, str) else repr(raw))

    data: Dict[str, Any] = {}
    for candidate in _candidates(raw):
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            data = parsed
            break
    else:
        raise MalformedResponseError("Reply is not a JSON object", raw=raw)

    return VerdictPayload(
        summary=_as_text(data.get("summary")),
        details=_as_text(data.get("details")),
        rating=Rating.parse(data.get("rating") or data.get("risk_rating")),
    )

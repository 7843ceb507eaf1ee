from typing import Any, Dict

import requests

from balog.errors import CollaboratorError
from balog.utils.logging import get_logger

log = get_logger(__name__)

GOOGLE_AI_MODEL = "gemini-2.5-flash"
GOOGLE_AI_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

INSIGHT_GENERATION_TIMEOUT_SECONDS = 60 * 3

SYSTEM_INSTRUCTION_FOR_INSIGHT_GENERATION = (
    "You are a chatbot which analyzes fail2ban ban action logs and IP-based geolocation data "
    "to generate insights for the user. Offer system or security insights based on the analysis. "
    "Highlight and explain any unusual patterns or noteworthy findings. Your response must be in "
    "plain text, so do not try to emphasize words with markdown characters."
)

PROMPT_TEMPLATE = """Following are summarized reports of ban action logs and the geolocations of the logs.
Analyze these reports and offer system or security insights based on the analysis.
Highlight and explain any unusual patterns or noteworthy findings.

<older_report>
{older}
</older_report>

<recent_report>
{recent}
</recent_report>"""


def _collect_text(response: Dict[str, Any]) -> str:
    candidates = response.get("candidates") or []
    if not candidates:
        raise CollaboratorError("no candidate returned from Gemini API")

    generated = ""
    for part in (candidates[0].get("content") or {}).get("parts") or []:
        if "text" in part:
            generated += part["text"] + "\n"
        elif "inlineData" in part:
            data = part["inlineData"]
            # base64 payload, 4 chars per 3 bytes
            size = len(data.get("data", "")) * 3 // 4
            generated += f"{size} byte(s) of {data.get('mimeType')}\n"
        else:
            raise CollaboratorError(f"unsupported type of part returned from Gemini API: {part}")
    return generated


def generate_insight(
    api_key: str,
    system_instruction: str,
    older_report: str,
    recent_report: str,
    model: str = GOOGLE_AI_MODEL,
    timeout: float = INSIGHT_GENERATION_TIMEOUT_SECONDS,
) -> str:
    """Ask Gemini to compare an older and a recent report."""
    body = {
        "system_instruction": {"parts": [{"text": system_instruction}]},
        "contents": [
            {
                "role": "user",
                "parts": [{"text": PROMPT_TEMPLATE.format(older=older_report, recent=recent_report)}],
            }
        ],
    }
    try:
        resp = requests.post(
            f"{GOOGLE_AI_API_BASE_URL}/models/{model}:generateContent",
            json=body,
            headers={"x-goog-api-key": api_key},
            timeout=timeout,
        )
        resp.raise_for_status()
        payload = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise CollaboratorError(f"failed to generate insight: {e}") from e

    return _collect_text(payload)


def summarizer(api_key: str, model: str = GOOGLE_AI_MODEL):
    """Bind `api_key` and return a (system_instruction, older, recent) -> str callable."""
    def summarize(system_instruction: str, older_report: str, recent_report: str) -> str:
        return generate_insight(api_key, system_instruction, older_report, recent_report, model=model)
    return summarize

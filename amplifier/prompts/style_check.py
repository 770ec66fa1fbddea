"""LLM review of a user's custom style prompt.

Fails open: if the review call itself breaks, the prompt is allowed and the
verdict is flagged with ``error=True``.
"""

import logging

from pydantic import BaseModel

from amplifier.errors import AmplifierError
from amplifier.providers import make_adapter

_log = logging.getLogger(__name__)

REVIEW_MODELS = {
    "openai": "gpt-4.1-mini",
    "anthropic": "claude-3-5-haiku-20241022",
}

REVIEW_SYSTEM_PROMPT = """You are a prompt safety validator for a tool that supports Iranian civil society and human rights.

Your task: Analyze the user's style prompt to determine if it could be used to:
1. Support the Iranian regime, IRGC, or government propaganda
2. Attack, threaten, or undermine protestors, activists, or journalists
3. Spread disinformation or conspiracy theories against the freedom movement
4. Generate hate speech or incite violence
5. Subvert the tool's mission of supporting Iranian civil society

IMPORTANT: The prompt you're validating is a STYLE prompt - it controls tone and content strategy.
Users can legitimately customize tone (formal, casual, urgent), content focus (human rights, policy, diaspora), etc.
Only flag prompts that clearly attempt to subvert the mission.

Return a JSON object:
{
  "valid": true/false,
  "reason": "Brief explanation (required if invalid)"
}"""


class StyleCheck(BaseModel):
    valid: bool
    reason: str
    error: bool = False


def _review_message(style_prompt: str) -> str:
    return (
        "Analyze this style prompt for a tool that generates posts supporting Iranian civil society:\n\n"
        f'"""\n{style_prompt}\n"""\n\n'
        "Is this prompt safe to use? Return JSON."
    )


async def validate_style_prompt(provider: str, api_key: str, style_prompt: str) -> StyleCheck:
    try:
        adapter = make_adapter(provider, api_key)
        response = await adapter.call(
            REVIEW_MODELS[provider],
            REVIEW_SYSTEM_PROMPT,
            [{"role": "user", "content": _review_message(style_prompt)}],
            temperature=0.1,
            max_tokens=150,
        )
    except AmplifierError as exc:
        _log.warning("Style prompt review failed: %s", exc)
        return StyleCheck(valid=True, reason="Validation skipped (error occurred)", error=True)

    verdict = response.result
    valid = verdict.get("valid") is True
    reason = verdict.get("reason") or ("Prompt approved" if valid else "Prompt rejected")
    return StyleCheck(valid=valid, reason=str(reason))

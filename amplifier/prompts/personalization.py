"""Per-user voice preferences and the fingerprint seed."""

import secrets
import string

from pydantic import BaseModel

SEED_LENGTH = 7
_SEED_ALPHABET = string.ascii_lowercase + string.digits

# key -> (label, description)
VOICE_STYLES = {
    "professional": ("Professional & measured", "Calm, factual, authoritative tone"),
    "passionate": ("Passionate & direct", "Urgent, emotionally engaged, calls to action"),
    "analytical": ("Thoughtful & analytical", "Evidence-based, nuanced, educational"),
    "personal": ("Warm & personal", "Conversational, empathetic, human stories"),
}

BACKGROUNDS = {
    "tech": ("Technology", "Tech industry, digital rights, internet freedom"),
    "healthcare": ("Healthcare", "Medical, humanitarian, public health angles"),
    "arts": ("Arts & Culture", "Cultural preservation, artistic expression"),
    "law": ("Law & Policy", "Legal frameworks, international law, sanctions"),
    "business": ("Business", "Economic impact, trade, entrepreneurship"),
    "student": ("Student/Academic", "Education, youth perspective, research"),
    "other": ("Other", "General perspective"),
}

APPROACHES = {
    "facts": ("Facts & evidence", "Data, statistics, documented events"),
    "human": ("Human stories & impact", "Personal narratives, real consequences"),
    "policy": ("Policy & action", "What can be done, calls for change"),
    "mixed": ("Mixed approach", "Balance of all approaches"),
}

LENGTHS = {
    "punchy": ("Punchy", "Short, impactful (under 180 chars)"),
    "medium": ("Medium", "Balanced length (180-240 chars)"),
    "full": ("Full", "Use full character limit (up to 280 chars)"),
}


class UserPreferences(BaseModel):
    voice_style: str = "mixed"
    background: str = "other"
    approach: str = "mixed"
    length: str = "medium"


class Personalization(BaseModel):
    preferences: UserPreferences | None = None
    seed: str | None = None


def generate_user_seed() -> str:
    return "".join(secrets.choice(_SEED_ALPHABET) for _ in range(SEED_LENGTH))


def build_personalization_prompt(preferences: UserPreferences | None, seed: str | None) -> str:
    """Render the personalization block appended to the style prompt.

    "mixed" / "other" choices add nothing; the block is empty when neither a
    preference line nor a seed survives.
    """
    if preferences is None and not seed:
        return ""

    lines = ["## Your Personalized Style"]
    if preferences is not None:
        voice = VOICE_STYLES.get(preferences.voice_style)
        if voice and preferences.voice_style != "mixed":
            lines.append(f"Voice: {voice[0]} - {voice[1]}")

        background = BACKGROUNDS.get(preferences.background)
        if background and preferences.background != "other":
            lines.append(f"Background: {background[0]} - reference {background[1].lower()} when relevant")

        approach = APPROACHES.get(preferences.approach)
        if approach and preferences.approach != "mixed":
            lines.append(f"Approach: {approach[1]}")

        length = LENGTHS.get(preferences.length)
        if length:
            lines.append(f"Length: {length[0]} - {length[1]}")

    if seed:
        lines.append(f"Voice fingerprint: {seed} - let this subtly influence your unique word choices and phrasing")

    if len(lines) > 1:
        return "\n".join(lines)
    return ""

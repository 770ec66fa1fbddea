"""Four-layer prompt construction.

1. fixed guardrail prompt          (catalog, never user-editable)
2. developer context               (post, author profile, arguments, CTAs, exclusions)
3. user style prompt               (custom or catalog default, plus personalization)
4. user input                      (initial instruction or sanitized feedback)

Layers 1+3 form the system prompt; 2+4 become the first user message. Every
function here is pure.
"""

from typing import Literal, Sequence

from amplifier.config.catalog import Catalog
from amplifier.models import Author, PostData, ProfileContext, ResponseType
from amplifier.prompts.personalization import Personalization, build_personalization_prompt

_TYPE_DESCRIPTIONS = {
    "reply": "These should be direct replies to the author.",
    "quote": "These should be quote reposts with commentary that can stand alone.",
}

_USAGE_RULES = (
    "- Use only items that are relevant to THIS post.",
    "- If none are relevant, write a response without forcing them.",
    "- Do not add new factual claims beyond the selected arguments and the post text.",
    "- Treat sensitive numbers as estimates and use attribution language.",
)


def _author_line(author: Author) -> str:
    handle = author.handle or "unknown"
    display_name = author.display_name or handle
    if not handle.startswith("@"):
        handle = f"@{handle}"
    return f"Author: {display_name} ({handle})"


def _yes_no(flag: bool | None) -> str:
    return "yes" if flag else "no"


def build_developer_context(
    post: PostData,
    selected_argument_ids: Sequence[int],
    selected_cta_ids: Sequence[int],
    catalog: Catalog,
    profile: ProfileContext | None = None,
    response_type: ResponseType = "reply",
    mode: Literal["initial", "refine"] = "initial",
) -> str:
    """Render the per-request developer context block.

    ``mode`` marks whether the request carries feedback; both modes render the
    same block so the first turn and later refinements stay comparable.
    """
    lines = [
        "## TASK",
        f"Write exactly 3 X {response_type} responses to the original post below.",
        _TYPE_DESCRIPTIONS.get(response_type, ""),
        "",
        "## ORIGINAL POST",
        _author_line(post.author),
    ]

    meta = []
    if profile and profile.category and profile.category != "unknown":
        meta.append(f"Category: {profile.category}")
    if profile and profile.follower_category:
        meta.append(f"Followers: {profile.follower_category}")
    meta.append(f"Verified: {_yes_no(post.author.is_verified)}")
    lines.append("- " + " | ".join(meta))

    if profile and profile.bio:
        lines.append(f'- Bio: "{profile.bio}"')
    if post.has_media is not None:
        lines.append(f"- Contains media: {_yes_no(post.has_media)}")
    lines += ["", f"Text: {post.text}"]

    if post.quoted_post:
        quoted = post.quoted_post
        lines += [
            "",
            "## QUOTED POST",
            _author_line(quoted.author),
            f"- Verified: {_yes_no(quoted.author.is_verified)}",
            "",
            f"Text: {quoted.text}",
        ]
    lines.append("")

    arguments = {a.id: a for a in catalog.include_arguments()}
    selected_arguments = [arguments[i] for i in selected_argument_ids if i in arguments]
    if selected_arguments:
        lines.append("## SELECTED ARGUMENTS (facts you MAY use if relevant; do not invent)")
        lines += [f"- [{a.id}] {a.title}: {a.description}" for a in selected_arguments]
        lines.append("")

    ctas = {c.id: c for c in catalog.call_to_actions()}
    selected_ctas = [ctas[i] for i in selected_cta_ids if i in ctas]
    if selected_ctas:
        lines.append("## SELECTED CALLS TO ACTION (policy asks you MAY include if relevant)")
        lines += [f"- [{c.id}] {c.title}: {c.description}" for c in selected_ctas]
        lines.append("")

    exclusions = catalog.exclusions()
    if exclusions:
        lines.append("## ALWAYS-ON EXCLUSIONS")
        lines += [f"- {e.description}" for e in exclusions]
        lines.append("")

    lines.append("## INSTRUCTIONS FOR USING ARGUMENTS/CTAs")
    lines += _USAGE_RULES
    return "\n".join(lines)


def build_user_style_prompt(
    catalog: Catalog,
    custom_user_prompt: str | None = None,
    personalization: Personalization | None = None,
) -> str:
    if custom_user_prompt and custom_user_prompt.strip():
        style = custom_user_prompt
    else:
        style = catalog.default_user_prompt()

    if personalization:
        block = build_personalization_prompt(personalization.preferences, personalization.seed)
        if block:
            style = f"{style}\n\n{block}"
    return style


def build_system_prompt(catalog: Catalog, style_prompt: str) -> str:
    return f"{catalog.fixed_prompt()}\n\n{style_prompt}"


def build_api_messages(developer_context: str, history: list[dict], user_input: str) -> list[dict]:
    """First turn: one user message carrying context + input. Later: history + input."""
    if not history:
        return [{"role": "user", "content": f"{developer_context}\n\n{user_input}"}]
    return [*({"role": m["role"], "content": m["content"]} for m in history),
            {"role": "user", "content": user_input}]

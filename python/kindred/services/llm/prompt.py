"""Provider-agnostic prompt rendering for companion chats.

Produces a list of Turn objects; each adapter converts them to its own
wire format.

Prompt structure:
- System turn describing the companion, always first
- At most the last MAX_HISTORY_TURNS history turns (user/assistant only)
- Current user message last
"""

from kindred.services.llm.types import Turn

MAX_HISTORY_TURNS = 10

CLOSING_INSTRUCTIONS = (
    "Respond to the user's message in a way that's consistent with your personality "
    "and purpose. Keep responses conversational, empathetic, and helpful. "
    "Limit responses to 150 words or less."
)


def build_system_prompt(
    name: str,
    category: str,
    personality: str,
    description: str,
    instructions: str | None = None,
) -> str:
    """Describe the companion to the model.

    Example output:
        You are Luna, an AI companion with the following characteristics:
        - Category: Creative Arts
        - Personality: Imaginative, artistic, ...
        - Description: A creative muse ...

        Respond to the user's message ...
    """
    lines = [
        f"You are {name}, an AI companion with the following characteristics:",
        f"- Category: {category}",
        f"- Personality: {personality}",
        f"- Description: {description}",
    ]
    if instructions:
        lines.append(f"- Special instructions: {instructions}")

    return "\n".join(lines) + "\n\n" + CLOSING_INSTRUCTIONS


def render_prompt(
    user_content: str,
    history: list[Turn],
    system_prompt: str,
    max_history: int = MAX_HISTORY_TURNS,
) -> list[Turn]:
    """Build the turn list for a provider request.

    Args:
        user_content: Current user message text.
        history: Prior turns supplied by the client, oldest first.
        system_prompt: Rendered companion description.
        max_history: How many of the most recent history turns to keep.

    Returns:
        List of Turn objects, system turn first, user message last.
    """
    turns: list[Turn] = [Turn(role="system", content=system_prompt)]

    if max_history > 0:
        recent = [t for t in history if t.role in ("user", "assistant")]
        turns.extend(recent[-max_history:])

    turns.append(Turn(role="user", content=user_content))

    return turns

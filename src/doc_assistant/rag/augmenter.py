"""Splice search results into a chat message list."""

from typing import Dict, List, Optional, Sequence, Tuple


CONTEXT_LABEL = "Relevant context from documentation:"
RESULT_SEPARATOR = "\n\n"
RAG_PREFIX = "#rag "

Message = Dict[str, str]


def strip_rag_prefix(text: str) -> Tuple[bool, str]:
    """Detect a '#rag ' prefix asking for augmentation.

    Returns:
        Tuple of (augmentation requested, text without the prefix)
    """
    if text.startswith(RAG_PREFIX):
        return True, text[len(RAG_PREFIX):]
    return False, text


def build_context_message(results: Sequence[str]) -> Optional[str]:
    """Join results under the context label, or None when there are none."""
    if not results:
        return None
    return CONTEXT_LABEL + RESULT_SEPARATOR + RESULT_SEPARATOR.join(results)


def augment_messages(
    messages: Sequence[Message],
    results: Sequence[str],
    requested: bool = True,
    role: str = "system",
) -> List[Message]:
    """Insert a context message before the user's question.

    The context goes right before the last user message, or at the end when
    the list has no user message. The input list is not modified.

    Args:
        messages: Chat messages as {"role", "content"} dicts
        results: Search result texts, most relevant first
        requested: Whether augmentation was asked for
        role: Role of the inserted context message

    Returns:
        New message list
    """
    augmented = list(messages)
    context = build_context_message(results) if requested else None
    if context is None:
        return augmented

    position = len(augmented)
    for index in range(len(augmented) - 1, -1, -1):
        if augmented[index].get("role") == "user":
            position = index
            break

    augmented.insert(position, {"role": role, "content": context})
    return augmented

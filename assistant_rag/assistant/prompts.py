"""Prompt templates for the in-app assistant.

Two system prompts (short chat replies, long-form content) plus the
template that wraps a user question with retrieved knowledge-base context.
Every prompt tells the model to link only to internal routes in
``[Text](/route)`` form; the route extractor relies on that format.
"""

from __future__ import annotations


def build_chat_system_prompt(app_name: str, category: str | None = None) -> str:
    """System prompt for conversational answers.

    Args:
        app_name: Product name shown to users
        category: Page the user is currently on, if known

    Returns:
        System prompt text
    """
    prompt = (
        f"You are the in-app assistant for {app_name}. Keep replies short and friendly (80 words or fewer). "
        f"Answer only from {app_name}'s internal knowledge. If you are unsure, say so briefly, ask ONE short "
        "clarifying question, and suggest up to 3 internal routes formatted as [Text](/route). "
        "Do not invent features. Only use internal routes such as /auth/login, /auth/signup, "
        "/dashboard/overview, /dashboard/bookings. Never output external URLs."
    )
    return prompt + _page_sentence(category)


def build_content_system_prompt(app_name: str, category: str | None = None) -> str:
    """System prompt for single-prompt, long-form content."""
    prompt = (
        f"You are a helpful assistant for the {app_name} application. Answer user questions accurately "
        "from the provided context. If the context does not contain the answer, tell the user you do not "
        "have that information. Do not make things up, but you may synthesize and summarize the context "
        "into a clear, user-friendly answer. When suggesting navigation, reference only internal routes "
        'from the knowledge base, formatted as [Link Text](route) where route starts with "/". '
        "Never produce external URLs or full domain URLs such as https://domain.com/path. "
        "Use only internal routes such as /auth/login, /auth/signup, /dashboard/overview."
    )
    return prompt + _page_sentence(category)


def build_rag_prompt(app_name: str, context: str, question: str, category: str | None = None) -> str:
    """Wrap a user question with retrieved context.

    Args:
        app_name: Product name shown to users
        context: Joined knowledge-base snippets
        question: Original user message
        category: Current page; switches to the page-focused variant

    Returns:
        Replacement content for the user message
    """
    if category:
        instructions = (
            f'You are a helpful assistant for the {app_name} application. The user is currently on the "{category}" '
            "page. Give help specific to this page. Using the context below, answer the user's question with a "
            "focus on how it relates to the current page."
        )
    else:
        instructions = (
            f"You are a helpful assistant for the {app_name} application. The user is asking what the system can "
            f"do. Using the context below, give a clear, concise summary of what the user can do with {app_name}. "
            "Even if the context is technical, pull out the user-facing functionality and explain it simply."
        )

    return f"""{instructions}

CONTEXT:
{context}

USER QUESTION:
{question}"""


def _page_sentence(category: str | None) -> str:
    if not category:
        return ""
    return (
        f' The user is currently on the "{category}" page. '
        "Give help specific to this page's functionality whenever possible."
    )

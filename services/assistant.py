"""
AI conveniences — email summaries, smart replies, and the daily brief.

When no API key is configured for ``config.ai_provider`` every function
returns deterministic fallback text instead of calling a model. With a key
configured, completion failures surface as ``UpstreamError``.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Sequence

import anthropic
import openai

from config.settings import config
from services.errors import UpstreamError
from services.prompts import AssistantPrompts
from utils.dates import ensure_utc, get_zone
from utils.llm_providers import get_llm_provider, llm_configured

logger = logging.getLogger(__name__)

_AI_ERRORS = (openai.OpenAIError, anthropic.AnthropicError)

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")

SUMMARY_MAX_CHARS = 240

_REPLY_TEMPLATES = {
    "professional": (
        'Thank you for your email regarding "{subject}". I will review the details and get back to you shortly.',
        'Thanks for reaching out about "{subject}". Could we find a time this week to discuss it further?',
    ),
    "friendly": (
        'Hi! Thanks so much for your note about "{subject}". I\'ll take a look and get back to you soon.',
        'Thanks for the message! Happy to chat about "{subject}" whenever works for you.',
    ),
    "casual": (
        'Got it, thanks! I\'ll look into "{subject}" and circle back.',
        'Thanks! Let\'s catch up about "{subject}" soon.',
    ),
}

_BRIEF_SCHEMA = {"summary": "string", "priorities": ["string"]}
_REPLIES_SCHEMA = {"replies": ["string", "string"]}


# ── Fallbacks ────────────────────────────────────────────────────────────


def fallback_summary(body: str) -> str:
    """First one or two sentences of ``body``, truncated."""
    text = " ".join((body or "").split())
    if not text:
        return "No content to summarize."
    summary = " ".join(_SENTENCE_END.split(text)[:2])
    if len(summary) > SUMMARY_MAX_CHARS:
        summary = summary[: SUMMARY_MAX_CHARS - 3].rstrip() + "..."
    return summary


def fallback_replies(subject: str, tone: str) -> List[str]:
    templates = _REPLY_TEMPLATES.get(tone, _REPLY_TEMPLATES["professional"])
    subject = subject or "your message"
    return [t.format(subject=subject) for t in templates]


def _local_time(value: datetime) -> str:
    return ensure_utc(value).astimezone(get_zone(config.business_timezone)).strftime("%H:%M")


def fallback_brief(emails: Sequence[Any], events: Sequence[Any], free_blocks: Sequence[Any]) -> Dict[str, Any]:
    priority = [e for e in emails if e.is_priority]
    unread = [e for e in emails if not e.is_read]

    summary = (
        f"You have {len(priority)} priority email{'s' if len(priority) != 1 else ''} "
        f"and {len(unread)} unread email{'s' if len(unread) != 1 else ''}, "
        f"with {len(events)} event{'s' if len(events) != 1 else ''} scheduled today."
    )
    if free_blocks:
        longest = max(free_blocks, key=lambda b: b.duration_minutes)
        summary += (
            f" Your longest free block is {longest.duration_minutes} minutes starting at "
            f"{_local_time(longest.start_time)}; use it for focused work."
        )

    priorities = [f"Respond to: {e.subject}" for e in priority[:3]]
    priorities += [f"Prepare for {ev.title} at {_local_time(ev.start_time)}" for ev in events]
    if not priorities:
        priorities = ["Check your inbox", "Prepare for scheduled meetings"]
    return {"summary": summary, "priorities": priorities[:5]}


# ── Generation ───────────────────────────────────────────────────────────


async def generate_email_summary(body: str) -> str:
    if not llm_configured():
        return fallback_summary(body)

    try:
        text = await get_llm_provider().generate(
            AssistantPrompts.email_summary_prompt(body),
            temperature=config.ai_temperature,
            max_tokens=150,
        )
    except _AI_ERRORS as exc:
        raise UpstreamError(f"Failed to generate email summary: {exc}") from exc
    return str(text).strip() or "Unable to generate summary."


async def generate_smart_replies(email: Any, tone: str = "professional") -> List[str]:
    """Two reply suggestions for ``email`` in ``tone``."""
    if not llm_configured():
        return fallback_replies(email.subject, tone)

    prompt = AssistantPrompts.smart_replies_prompt(email.sender, email.subject or "", email.body or "", tone)
    try:
        result = await get_llm_provider().generate(
            prompt,
            temperature=config.ai_temperature,
            output_schema=_REPLIES_SCHEMA,
        )
    except _AI_ERRORS as exc:
        raise UpstreamError(f"Failed to generate smart replies: {exc}") from exc

    replies = [r.strip() for r in result.get("replies", []) if isinstance(r, str) and r.strip()]
    if not replies:
        logger.warning("Model returned no usable replies; using a default reply")
        return ["Thank you for your email. I'll review this and get back to you shortly."]
    return replies


async def generate_daily_brief(
    emails: Sequence[Any],
    events: Sequence[Any],
    free_blocks: Sequence[Any],
) -> Dict[str, Any]:
    """``{"summary": str, "priorities": [str]}`` for today's mail and calendar."""
    if not llm_configured():
        return fallback_brief(emails, events, free_blocks)

    prompt = AssistantPrompts.daily_brief_prompt(
        [
            {
                "from": e.sender,
                "subject": e.subject,
                "isPriority": e.is_priority,
                "snippet": e.snippet,
                "receivedAt": ensure_utc(e.received_at).isoformat(),
            }
            for e in emails
        ],
        [
            {
                "title": ev.title,
                "startTime": _local_time(ev.start_time),
                "endTime": _local_time(ev.end_time),
                "location": ev.location,
            }
            for ev in events
        ],
        [
            {
                "start": _local_time(b.start_time),
                "end": _local_time(b.end_time),
                "durationMinutes": b.duration_minutes,
            }
            for b in free_blocks
        ],
    )
    try:
        result = await get_llm_provider().generate(
            prompt,
            temperature=config.ai_temperature,
            output_schema=_BRIEF_SCHEMA,
        )
    except _AI_ERRORS as exc:
        raise UpstreamError(f"Failed to generate daily brief: {exc}") from exc

    summary = result.get("summary")
    if not summary:
        logger.warning("Model returned no brief summary; using the computed brief")
        return fallback_brief(emails, events, free_blocks)
    priorities = [p for p in result.get("priorities", []) if isinstance(p, str)]
    return {"summary": summary, "priorities": priorities}

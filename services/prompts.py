"""
Assistant prompts — email summaries, smart replies and the daily brief.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List


class AssistantPrompts:

    @staticmethod
    def email_summary_prompt(body: str) -> str:
        return f"""Please summarize the following email concisely while maintaining key points:

{body}

Please provide a concise summary in 1-2 sentences."""

    @staticmethod
    def smart_replies_prompt(sender: str, subject: str, body: str, tone: str) -> str:
        return f"""You are an AI assistant generating email reply suggestions.

### Original Email
From: {sender}
Subject: {subject}

{body}

### Instructions
- Generate 2 different reply suggestions in a **{tone}** tone.
- Each reply should be concise (3-5 sentences) and relevant to the content.
- Do not invent commitments, dates or figures that are not in the email.

### Output (JSON)
{{
    "replies": ["First reply text", "Second reply text"]
}}"""

    @staticmethod
    def daily_brief_prompt(
        emails: List[Dict[str, Any]],
        events: List[Dict[str, Any]],
        free_blocks: List[Dict[str, Any]],
    ) -> str:
        return f"""You are an AI assistant generating a daily brief for a professional.

### Emails ({len(emails)} total)
{json.dumps(emails, indent=2, default=str)}

### Calendar Events
{json.dumps(events, indent=2, default=str)}

### Free Time Blocks
{json.dumps(free_blocks, indent=2, default=str)}

### Instructions
1. Write a concise summary paragraph that mentions the number of important
   emails and meetings, and suggests how to use the free time blocks.
2. List 3-5 specific priorities based only on the data above.

### Output (JSON)
{{
    "summary": "Summary text",
    "priorities": ["Priority 1", "Priority 2", "Priority 3"]
}}"""

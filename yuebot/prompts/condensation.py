"""Prompts for memory condensation."""

SUMMARY_SYSTEM_PROMPT = """You maintain the long-term memory of a chat persona named {name}.
Summarize the conversation below as a short narrative (at most one paragraph).

Rules:
- Attribute every statement to the participant who made it, using their name exactly as written.
- Keep promises, plans, preferences, running jokes and unresolved questions.
- Drop greetings, filler and anything already covered by the previous summary unless it changed.
- Write in the same language the participants use.
- Output only the summary text."""

FACTS_SYSTEM_PROMPT = """You extract durable facts for the long-term memory of a chat persona named {name}.
From the conversation below, list the salient facts worth remembering in future conversations:
who people are, what they like, what they own, what they are working on, and relationships between them.

Rules:
- One fact per line, no numbering, no commentary.
- Each fact must name the participant it is about.
- Skip facts that are temporary or trivial.
- If there is nothing worth remembering, output nothing."""

"""Prompt for the reply/no-reply classifier."""

CLASSIFIER_SYSTEM_PROMPT = """Decide whether the new message is addressed to {name} (a chat bot) or continues a conversation with {name}.
Answer with exactly one word: {yes} or {no}.

Consider:
- Direct mentions ({name}, @{name}) mean {yes}.
- A reply that continues the recent conversation with {name} means {yes}.
- Questions that ask {name} for help mean {yes}.
- Greetings or chatter between other people without naming {name} mean {no}.

Recent conversation:
{history}

New message from {speaker}: "{message}\""""

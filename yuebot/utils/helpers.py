"""Small helpers shared by channels."""


def split_text(text: str, max_length: int) -> list[str]:
    """Split plain text into chunks of at most *max_length* characters.

    Prefers paragraph, then line, then word boundaries, as long as the
    boundary is not in the first quarter of the chunk.
    """
    if len(text) <= max_length:
        return [text]

    chunks: list[str] = []
    remaining = text
    min_pos = max_length // 4

    while remaining:
        if len(remaining) <= max_length:
            chunks.append(remaining)
            break

        pos = remaining.rfind('\n\n', 0, max_length)
        if pos <= min_pos:
            pos = remaining.rfind('\n', 0, max_length)
        if pos <= min_pos:
            pos = remaining.rfind(' ', 0, max_length)
        if pos <= min_pos:
            pos = max_length

        chunks.append(remaining[:pos])
        remaining = remaining[pos:].lstrip('\n ')

    return chunks

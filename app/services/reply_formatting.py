"""Text helpers for assistant replies and conversation history."""

import re

ACKNOWLEDGMENTS: tuple[str, ...] = (
    "obrigado", "obrigada", "obg", "brigado", "brigada",
    "ok", "okay", "blz", "beleza", "certo",
    "valeu", "vlw", "valew",
    "perfeito", "top", "show", "legal",
    "entendi", "entendido", "ta bom", "tá bom", "tá", "ta",
    "sim", "não", "nao",
    "👍", "✅", "🙏", "😊", "🤝", "👏",
)

_AUDIO_HEADER = re.compile(r"🔊\s*\*?Áudio enviado pela IA:?\*?\s*", re.IGNORECASE)
_AUDIO_MARKER = re.compile(r"\[Áudio:\s*https?://[^\]]+\]", re.IGNORECASE)
_URL = re.compile(r"https?://[^\s\]]+", re.IGNORECASE)
_GREETING = re.compile(r"^ol[áa][!.,\s]", re.IGNORECASE)
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


def normalize_whitespace(text: str | None) -> str:
    """Collapse runs of spaces and blank lines."""
    text = (text or "").replace("\r\n", "\n")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def clean_history_content(content: str | None) -> str:
    """Strip audio markers and URLs from a stored message before it goes into history."""
    if not content:
        return ""
    cleaned = _AUDIO_HEADER.sub("", content)
    cleaned = _AUDIO_MARKER.sub("", cleaned)
    cleaned = _URL.sub("", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def remove_duplicate_paragraphs(text: str) -> str:
    """Drop repeated paragraphs and a second "Olá" greeting from a reply."""
    paragraphs = [p.strip() for p in re.split(r"\n\n+", normalize_whitespace(text)) if p.strip()]

    seen: set[str] = set()
    kept: list[str] = []
    for paragraph in paragraphs:
        key = re.sub(r"\s+", " ", paragraph.lower()).strip()
        if key in seen:
            continue
        if kept and _GREETING.match(paragraph) and _GREETING.match(kept[0]):
            continue
        seen.add(key)
        kept.append(paragraph)
    return "\n\n".join(kept)


def is_simple_acknowledgment(text: str | None) -> bool:
    """Check if a message is just "ok", "obrigado", a thumbs up and the like."""
    normalized = (text or "").lower().strip()
    if not normalized:
        return False
    for ack in ACKNOWLEDGMENTS:
        if re.fullmatch(rf"{re.escape(ack)}[!.,\s]*", normalized):
            return True
    return False


def _hard_split(text: str, limit: int) -> list[str]:
    return [text[i : i + limit].strip() for i in range(0, len(text), limit) if text[i : i + limit].strip()]


def _pack(pieces: list[str], limit: int, joiner: str) -> list[str]:
    """Greedily pack pieces into chunks no longer than ``limit``."""
    chunks: list[str] = []
    current = ""
    for piece in pieces:
        candidate = f"{current}{joiner}{piece}" if current else piece
        if len(candidate) <= limit:
            current = candidate
            continue
        if current:
            chunks.append(current)
        current = piece
    if current:
        chunks.append(current)
    return chunks


def split_message(text: str, limit: int = 900) -> list[str]:
    """Split a long reply into WhatsApp-sized chunks.

    Paragraph boundaries are used first. A paragraph still longer than the
    limit is split at sentence boundaries, and a sentence longer than the
    limit is cut hard.

    Args:
        text: Reply text
        limit: Maximum characters per chunk

    Returns:
        Non-empty chunks in order
    """
    normalized = normalize_whitespace(text)
    if len(normalized) <= limit:
        return [normalized] if normalized else []

    pieces: list[str] = []
    for paragraph in re.split(r"\n\n+", normalized):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if len(paragraph) <= limit:
            pieces.append(paragraph)
            continue
        sentences: list[str] = []
        for sentence in _SENTENCE_END.split(paragraph):
            if len(sentence) <= limit:
                sentences.append(sentence)
            else:
                sentences.extend(_hard_split(sentence, limit))
        pieces.extend(_pack(sentences, limit, " "))

    return _pack(pieces, limit, "\n\n")

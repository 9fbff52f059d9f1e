"""Build Craft text blocks from Zotero notes."""

from zotcraft_sync.zotero.notes import extract_note_paragraphs

NOTES_HEADING = "## Notes"


def text_block(markdown: str) -> dict:
    return {"type": "text", "markdown": markdown}


def build_note_blocks(notes: list[str]) -> list[dict]:
    """A "Notes" heading followed by one block per note paragraph.

    Returns an empty list when no note yields any text.
    """
    paragraphs = [p for note in notes for p in extract_note_paragraphs(note)]
    if not paragraphs:
        return []
    return [text_block(NOTES_HEADING)] + [text_block(p) for p in paragraphs]

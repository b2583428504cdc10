"""
Prompt builders for grounded synthesis and style transform, and the
attribution check applied to stage 1 output.
"""

from typing import List, Set

from ..vector.types import SearchResult

NO_ADVICE_SENTINEL = "This area hasn't been covered in my existing advice yet."

ATTRIBUTION_HEADER = "For more insights, check out:"

STAGE1_SYSTEM_PROMPT = f"""You answer questions about startups and entrepreneurship using only the advice entries provided.

Response rules:
1. Use only the advice entries given. Every claim must come from one of them.
2. Combine the relevant entries into one coherent answer and carry over the context attached to each entry.
3. When quoting directly, write: "As I mentioned in [Source Title], '[quote]'". Paraphrase everything else faithfully.
4. If entries offer different perspectives, present them as different valid approaches.
5. If none of the entries is relevant, reply exactly: "{NO_ADVICE_SENTINEL}"

Source attribution:
End the answer with a line reading "{ATTRIBUTION_HEADER}" followed by one bullet ("• ") per unique source link you used."""

STAGE2_SYSTEM_PROMPT = f"""Rewrite the given answer in a warm, direct, first-person voice of an experienced investor and entrepreneur.

Keep every fact, quote and source exactly as given; do not add new advice.
Keep the "{ATTRIBUTION_HEADER}" section and its links unchanged at the end."""


def format_entry(index: int, result: SearchResult) -> str:
    entry = result.entry
    return (
        f"Entry {index}:\n"
        f"Category: {entry.category}\n"
        f"SubCategory: {entry.sub_category}\n"
        f"Advice: {entry.advice}\n"
        f"Context: {entry.advice_context}\n"
        f"Source: {entry.source_title}\n"
        f"Source Type: {entry.source_type}\n"
        f"Link: {entry.source_link}"
    )


def build_stage1_prompt(query: str, grounding: List[SearchResult]) -> str:
    entries = "\n\n".join(format_entry(i, result) for i, result in enumerate(grounding, start=1))
    return (
        "Based on the following relevant advice entries, provide a comprehensive response:\n\n"
        f"{entries}\n\n"
        f"Query: {query}"
    )


def build_stage2_prompt(stage1_text: str, query: str) -> str:
    return (
        f"Original question: {query}\n\n"
        "Answer to rewrite:\n"
        f"{stage1_text}"
    )


def unique_source_links(grounding: List[SearchResult]) -> List[str]:
    """Non-empty source links in grounding order, without duplicates."""
    return list(dict.fromkeys(r.entry.source_link for r in grounding if r.entry.source_link))


def _section_links(section: str) -> Set[str]:
    """Exact links listed as bullets ("• link" or "- link") in an attribution section."""
    links = set()
    for line in section.splitlines():
        line = line.strip()
        if line[:1] in ("•", "-", "*"):
            line = line[1:].strip()
        if line:
            links.add(line)
    return links


def ensure_attribution(text: str, grounding: List[SearchResult]) -> str:
    """
    Make sure the text ends with an attribution section naming every source link.

    Adds the whole section when the header is absent; otherwise appends the
    links missing from the section.
    """
    links = unique_source_links(grounding)
    if not links:
        return text

    body = text.rstrip()
    position = body.rfind(ATTRIBUTION_HEADER)
    if position == -1:
        bullets = "\n".join(f"• {link}" for link in links)
        return f"{body}\n\n{ATTRIBUTION_HEADER}\n{bullets}"

    listed = _section_links(body[position + len(ATTRIBUTION_HEADER):])
    missing = [link for link in links if link not in listed]
    if not missing:
        return text
    bullets = "\n".join(f"• {link}" for link in missing)
    return f"{body}\n{bullets}"

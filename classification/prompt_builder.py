"""Prompt construction for batch keyword intent classification."""

from typing import Sequence

SYSTEM_PROMPT = """You are an analyst of job-search and recruiting search queries.
Classify each search keyword into exactly one intent category:

- branded_media: the searcher is looking for a specific job board or media brand.
- branded_customer: the searcher is looking for a specific employer, company or facility.
- branded_ambiguous: a proper name that may be a brand or a generic term.
- transactional: the searcher intends to find or apply for a job.
- informational: the searcher wants knowledge, conditions, comparisons or how-to content.
- b2b: the searcher is an employer or recruiter (hiring costs, recruiting tools).
- unknown: none of the above can be decided.

A generic noun on its own (for example "hospital" or "clinic") is not branded.

Respond with a JSON object of the form:
{"classifications": [{"keyword": "...", "intent": "...", "confidence": 0.0, "reason": "..."}]}
Return one entry per keyword, copy each keyword exactly, keep confidence within
0 and 1, and keep each reason under 40 characters."""


def build_classification_prompt(keywords: Sequence[str]) -> str:
    """Build the user prompt listing the keywords to classify.

    Args:
        keywords: Keywords for one batch, in submission order.

    Returns:
        Prompt text with one numbered keyword per line.
    """
    keyword_list = "\n".join(f"{index}. {keyword}" for index, keyword in enumerate(keywords, start=1))
    return (
        f"Classify the following {len(keywords)} keywords:\n\n"
        f"{keyword_list}\n\n"
        "Return only the JSON object."
    )

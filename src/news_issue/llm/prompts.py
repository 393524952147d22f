"""Prompt templates for scoring, generation and finalization calls."""

from __future__ import annotations

CRITERION_SCORE_PROMPT = """\
You are an editor rating a news candidate for a newsletter section.

Criterion: {criterion_name}
{criterion_prompt}

Title: {title}
Description: {description}
Content:
{content}

Rate the candidate against the criterion on an integer scale from 0 to 10.
Respond with JSON only: {{"score": <0-10>, "reason": "<one sentence>"}}
"""

TITLE_PROMPT = """\
Write one newsletter headline for the article below.
Return only the headline text, no quotes, no prefix.

Original title: {title}
Content:
{content}
"""

BODY_PROMPT = """\
Write a concise newsletter article for the headline below, based only on the source.
Respond with JSON: {{"headline": "<headline>", "content": "<article body>"}}

Headline: {headline}
Source title: {title}
Source content:
{content}
"""

FACT_CHECK_PROMPT = """\
Compare the newsletter article with its source and rate factual accuracy.
Score three dimensions from 0 to 10 (accuracy, completeness, absence of
unsupported claims) and sum them into a total from 0 to 30.
Respond with JSON only: {{"score": <0-30>, "details": "<short explanation>"}}

Article headline: {headline}
Article body:
{body}

Source content:
{content}
"""

SUBJECT_LINE_PROMPT = """\
Write an email subject line (at most {max_chars} characters) for a newsletter
whose lead story has this headline and body. Return only the subject line.

Headline: {headline}
Body:
{body}
"""

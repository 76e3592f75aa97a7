"""Prompt builder for the publisher AI tools."""

from __future__ import annotations

from techpulse.core.models import AIContentRequest, AIRequestType

_CATEGORIES = (
    "AI, Software, Startups, Big Tech, Cybersecurity, Cloud, Programming, "
    "Gadgets, Web3, Fintech, Data, Robotics, Policy, SaaS"
)

SYSTEM_PROMPTS: dict[AIRequestType, str] = {
    AIRequestType.GENERATE: (
        "You are an expert tech journalist writing for a professional technology news "
        "website. Your articles are well-researched, engaging, and informative. Write in a "
        "clear, authoritative voice suitable for tech-savvy readers. Always cite sources "
        "when mentioning specific facts or statistics."
    ),
    AIRequestType.SUGGEST_HEADLINE: (
        "You are an expert headline writer for tech news. Create compelling, "
        "SEO-optimized headlines that are accurate and engaging."
    ),
    AIRequestType.SUGGEST_SUMMARY: (
        "You are a tech news editor skilled at writing concise, engaging article summaries."
    ),
    AIRequestType.SUGGEST_SEO: (
        "You are an SEO expert specializing in tech news content optimization."
    ),
    AIRequestType.IMPROVE_CONTENT: (
        "You are a tech news editor who improves article quality while maintaining "
        "the author's voice."
    ),
}

# Excerpt sent for the suggestion types
_EXCERPT = 2000


class MissingPromptInput(ValueError):
    pass


def _require(value: str | None, field: str) -> str:
    if not value or not value.strip():
        raise MissingPromptInput(f"'{field}' is required for this request type")
    return value


def build_user_prompt(req: AIContentRequest) -> str:
    """Build the user message for a request. Raises MissingPromptInput."""
    if req.type is AIRequestType.GENERATE:
        topic = _require(req.topic, "topic")
        return f"""Write a comprehensive tech news article about the following topic. Include:
- A compelling headline
- An engaging excerpt (2-3 sentences)
- Full article content (800-1200 words) with proper paragraphs
- Suggested category from: {_CATEGORIES}
- 3-5 relevant tags
- Estimated read time in minutes

Topic: {topic}

Respond in JSON format:
{{"title": "headline", "excerpt": "brief summary", "content": "full article with HTML paragraphs using <p> tags", "category": "suggested category", "tags": ["tag1", "tag2", "tag3"], "readTime": 5}}"""

    content = _require(req.content, "content")

    if req.type is AIRequestType.SUGGEST_HEADLINE:
        return f"""Based on this article content, suggest 5 alternative headlines that are compelling and SEO-friendly:

{content[:_EXCERPT]}

Respond in JSON format:
{{"headlines": ["headline1", "headline2", "headline3", "headline4", "headline5"]}}"""

    title = req.title or ""

    if req.type is AIRequestType.SUGGEST_SUMMARY:
        return f"""Write 3 alternative summaries/excerpts (2-3 sentences each) for this article:

Title: {title}
Content: {content[:_EXCERPT]}

Respond in JSON format:
{{"summaries": ["summary1", "summary2", "summary3"]}}"""

    if req.type is AIRequestType.SUGGEST_SEO:
        return f"""Analyze this article and provide SEO recommendations:

Title: {title}
Content: {content[:_EXCERPT]}

Provide:
- Optimized meta title (under 60 characters)
- Meta description (under 160 characters)
- 5-10 SEO keywords
- Content improvement suggestions

Respond in JSON format:
{{"seoTitle": "optimized title", "seoDescription": "meta description", "keywords": ["keyword1", "keyword2"], "suggestions": ["improvement1", "improvement2"]}}"""

    return f"""Improve this article for clarity, engagement, and accuracy. Keep the core message but enhance readability:

Title: {title}
Content: {content}

Respond in JSON format:
{{"improvedContent": "improved article with HTML paragraphs", "changes": ["change1", "change2", "change3"]}}"""

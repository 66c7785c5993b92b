"""Normalize posting descriptions and spot skill keywords in them."""
from __future__ import annotations

import re
import warnings

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

MAX_CLEAN_LENGTH = 5000

SKILL_PATTERNS: list[str] = [
    "React", "Next.js", "Next", "Node.js", "Node", "TypeScript", "JavaScript", "JS",
    "Python", "Django", "FastAPI", "Flask",
    "PostgreSQL", "MySQL", "MongoDB", "Redis", "SQL",
    "AWS", "Azure", "GCP", "Docker", "Kubernetes",
    "GraphQL", "REST API", "API",
    "HTML", "CSS", "Tailwind", "Bootstrap", "SCSS", "Sass",
    "Vue", "Vue.js", "Angular", "Svelte",
    "Express", "NestJS", "Prisma", "Supabase", "Firebase",
    "Git", "GitHub", "GitLab", "CI/CD",
    "TDD", "Testing", "Jest", "Cypress", "Playwright",
    "Figma", "UI/UX", "Design",
    "Stripe", "Payment", "E-commerce",
    "Vercel", "Netlify", "Heroku",
    "Redux", "Zustand", "Context API",
    "Webpack", "Vite", "ESBuild",
]

_SKILL_REGEXES: list[tuple[str, re.Pattern[str]]] = [
    (skill, re.compile(rf"\b{re.escape(skill)}\b", re.IGNORECASE)) for skill in SKILL_PATTERNS
]


def clean_description(description: str | None) -> str:
    """Strip markup and entities, collapse whitespace, cap the length."""
    if not description:
        return ""
    with warnings.catch_warnings():
        # Plain-text descriptions that look like a URL or path make bs4 chatty.
        warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
        text = BeautifulSoup(description, "html.parser").get_text(" ")
    text = text.replace("\xa0", " ")
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) > MAX_CLEAN_LENGTH:
        text = text[:MAX_CLEAN_LENGTH] + "..."
    return text


def extract_skills(text: str) -> list[str]:
    """Known skill names mentioned as whole words, in pattern-table order."""
    if not text:
        return []
    found = [skill for skill, regex in _SKILL_REGEXES if regex.search(text)]
    return list(dict.fromkeys(found))

from __future__ import annotations

from typing import Any

PROFILE: dict[str, Any] = {
    "name": "Alvaro Bravo",
    "headline": "Full-Stack Developer | AI Integrations & RAG",
    "email": "alvrobravo@gmail.com",
    "links": {
        "github": "https://github.com/davalbra",
        "linkedin": "https://www.linkedin.com/in/alvarobravo/",
        "site": "https://www.davalbra.cloud/",
    },
}

SERVICES: list[dict[str, str]] = [
    {
        "title": "AI integrations",
        "description": "OpenAI, Claude and Gemini with tools, function calling and assistants.",
        "icon": "brain-circuit",
    },
    {
        "title": "Data & RAG",
        "description": "Embeddings, semantic search and pgvector on Postgres/Neon.",
        "icon": "database",
    },
    {
        "title": "Automation",
        "description": "n8n workflows, webhooks and integration between business systems.",
        "icon": "workflow",
    },
    {
        "title": "Full-stack applications",
        "description": "Next.js / React / Vue with solid Node APIs.",
        "icon": "code",
    },
    {
        "title": "Mobile",
        "description": "Kotlin + Jetpack Compose with Retrofit and Room.",
        "icon": "smartphone",
    },
]

STACK_GROUPS: list[dict[str, Any]] = [
    {"name": "Frontend", "items": ["Vue", "React", "Next.js", "TypeScript"]},
    {"name": "Backend & data", "items": ["Node.js", "PostgreSQL", "Neon", "Prisma"]},
    {"name": "AI & automation", "items": ["OpenAI", "Claude", "Gemini", "n8n"]},
]

FEATURED_DEPLOYMENTS: list[dict[str, Any]] = [
    {
        "title": "AI WhatsApp assistant",
        "description": (
            "Conversational WhatsApp agent with context retention, image analysis and "
            "automated scheduling."
        ),
        "repoUrl": "https://github.com/davalbra",
        "demoUrl": "https://www.davalbra.cloud/",
        "tags": ["Python", "OpenAI API", "Twilio", "AWS Lambda"],
    },
    {
        "title": "Data pipeline orchestrator",
        "description": (
            "Scalable ETL framework with automated extract, transform and load flows."
        ),
        "repoUrl": "https://github.com/davalbra",
        "demoUrl": "https://www.davalbra.cloud/",
        "tags": ["Apache Airflow", "Docker", "SQL"],
    },
]

# Used when the GitHub repo listing is unavailable.
FALLBACK_LANGUAGES: list[dict[str, Any]] = [
    {"name": "TypeScript", "share": 40.0},
    {"name": "Python", "share": 32.0},
    {"name": "SQL", "share": 18.0},
    {"name": "Other", "share": 10.0},
]

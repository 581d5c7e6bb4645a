"""Knowledge-base documents and keyword search over them."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from recall_agent.retrieval.scoring import keyword_relevance, tokenize

_TITLE_BOOST = 0.5
_TAG_BOOST = 0.3


@dataclass(slots=True, frozen=True)
class KnowledgeDocument:
    """A reference document that can be surfaced by the knowledge tool."""

    id: str
    title: str
    content: str
    category: str
    tags: tuple[str, ...] = ()
    last_updated: str = ""


@dataclass(slots=True, frozen=True)
class KnowledgeHit:
    document: KnowledgeDocument
    relevance: float


@dataclass(slots=True)
class KnowledgeBase:
    """In-process document set searched by keyword overlap.

    Per query token: +1 if it appears in title, content or tags, +0.5 if it
    appears in the title, +0.3 if it appears in any tag. The sum is divided by
    the token count and zero scores are dropped.
    """

    documents: list[KnowledgeDocument] = field(default_factory=list)

    @classmethod
    def with_defaults(cls) -> "KnowledgeBase":
        return cls(documents=list(DEFAULT_DOCUMENTS))

    def add(self, documents: Iterable[KnowledgeDocument]) -> None:
        self.documents.extend(documents)

    def search(
        self,
        query: str,
        *,
        category: str | None = None,
        limit: int = 3,
    ) -> list[KnowledgeHit]:
        candidates = self.documents
        if category:
            wanted = category.lower()
            candidates = [doc for doc in candidates if doc.category.lower() == wanted]

        tokens = tokenize(query)
        scored: list[KnowledgeHit] = []
        for doc in candidates:
            tags = [tag.lower() for tag in doc.tags]
            text = f"{doc.title} {doc.content} {' '.join(doc.tags)}".lower()
            relevance = keyword_relevance(
                tokens,
                text,
                boosts=((_TITLE_BOOST, [doc.title.lower()]), (_TAG_BOOST, tags)),
            )
            if relevance > 0:
                scored.append(KnowledgeHit(document=doc, relevance=relevance))

        scored.sort(key=lambda hit: hit.relevance, reverse=True)
        return scored[:limit]


DEFAULT_DOCUMENTS: tuple[KnowledgeDocument, ...] = (
    KnowledgeDocument(
        id="doc_001",
        title="Deployment Guide",
        content=(
            "# Deployment Guide\n\n"
            "## Overview\n"
            "Releases use a blue-green deployment strategy so production never goes down.\n\n"
            "## Steps\n"
            "1. Build the container image\n"
            "2. Run the test suite in CI\n"
            "3. Deploy to the staging environment\n"
            "4. Run integration checks against staging\n"
            "5. Swap production traffic from blue to green\n\n"
            "## Rollback Procedure\n"
            "- Rollback window: 30 minutes\n"
            "- Command: `kubectl rollout undo deployment/app`\n"
            "- Failed health checks trigger an automatic rollback"
        ),
        category="infrastructure",
        tags=("deployment", "kubernetes", "devops"),
        last_updated="2025-11-10",
    ),
    KnowledgeDocument(
        id="doc_002",
        title="API Authentication",
        content=(
            "# API Authentication\n\n"
            "## Token Types\n"
            "- Access token: JWT, expires after 15 minutes\n"
            "- Refresh token: opaque, expires after 7 days\n\n"
            "## Flow\n"
            "1. The user signs in with credentials\n"
            "2. The server validates them and issues both tokens\n"
            "3. The access token authorizes API calls\n"
            "4. The refresh token is exchanged for a new access token\n\n"
            "## Security Measures\n"
            "- Tokens live in httpOnly cookies\n"
            "- CSRF protection is enabled\n"
            "- Auth endpoints are rate limited"
        ),
        category="security",
        tags=("authentication", "jwt", "security", "api"),
        last_updated="2025-11-12",
    ),
    KnowledgeDocument(
        id="doc_003",
        title="Database Schema",
        content=(
            "# Database Schema\n\n"
            "## users\n"
            "- id: UUID\n"
            "- email: VARCHAR(255)\n"
            "- created_at: TIMESTAMP\n"
            "- updated_at: TIMESTAMP\n\n"
            "## sessions\n"
            "- id: UUID\n"
            "- user_id: UUID (FK users.id)\n"
            "- token: VARCHAR(512)\n"
            "- expires_at: TIMESTAMP\n\n"
            "## Migrations\n"
            "Apply with `alembic upgrade head`, roll back with `alembic downgrade -1`."
        ),
        category="database",
        tags=("database", "schema", "postgresql", "migrations"),
        last_updated="2025-11-08",
    ),
    KnowledgeDocument(
        id="doc_004",
        title="Error Handling Best Practices",
        content=(
            "# Error Handling\n\n"
            "## Client Errors (4xx)\n"
            "- 400 Bad Request: invalid input\n"
            "- 401 Unauthorized: missing or invalid credentials\n"
            "- 403 Forbidden: insufficient permissions\n"
            "- 404 Not Found: the resource does not exist\n\n"
            "## Server Errors (5xx)\n"
            "- 500 Internal Server Error\n"
            "- 503 Service Unavailable\n\n"
            "## Error Response Format\n"
            '{"error": {"code": "ERROR_CODE", "message": "Human readable message", "details": {}}}'
        ),
        category="api",
        tags=("errors", "api", "best-practices"),
        last_updated="2025-11-14",
    ),
    KnowledgeDocument(
        id="doc_005",
        title="Testing Strategy",
        content=(
            "# Testing Strategy\n\n"
            "## Unit Tests\n"
            "- Framework: pytest\n"
            "- Coverage target: 80%\n"
            "- Run: `pytest tests/unit`\n\n"
            "## Integration Tests\n"
            "- Framework: pytest with a disposable database container\n"
            "- Run: `pytest tests/integration`\n\n"
            "## End-to-End Tests\n"
            "- Framework: Playwright\n\n"
            "## CI Pipeline\n"
            "Every pull request and every merge to main runs the full suite."
        ),
        category="testing",
        tags=("testing", "pytest", "playwright", "ci"),
        last_updated="2025-11-11",
    ),
)

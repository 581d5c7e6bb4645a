import pytest

from recall_agent.retrieval.knowledge import KnowledgeBase, KnowledgeDocument


def test_title_and_tag_boosts_are_added() -> None:
    kb = KnowledgeBase.with_defaults()

    hits = kb.search("deployment guide")

    assert hits[0].document.id == "doc_001"
    # deployment: 1 + 0.5 title + 0.3 tag; guide: 1 + 0.5 title.
    assert hits[0].relevance == pytest.approx((1.8 + 1.5) / 2)


def test_category_filter_is_case_insensitive() -> None:
    kb = KnowledgeBase.with_defaults()

    assert kb.search("deployment", category="security") == []
    hits = kb.search("deployment", category="Infrastructure")
    assert [hit.document.id for hit in hits] == ["doc_001"]


def test_results_sorted_and_limited() -> None:
    kb = KnowledgeBase(
        documents=[
            KnowledgeDocument(id="a", title="Notes", content="cache layer", category="x"),
            KnowledgeDocument(id="b", title="Cache", content="cache eviction", category="x"),
            KnowledgeDocument(id="c", title="Other", content="unrelated", category="x"),
        ]
    )

    hits = kb.search("cache", limit=5)

    assert [hit.document.id for hit in hits] == ["b", "a"]
    assert kb.search("cache", limit=1)[0].document.id == "b"
    assert kb.search("") == []


def test_add_extends_document_set() -> None:
    kb = KnowledgeBase()
    kb.add([KnowledgeDocument(id="z", title="Runbook", content="pager duty", category="ops")])

    assert kb.search("pager")[0].document.id == "z"

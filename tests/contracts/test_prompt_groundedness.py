from recall_agent.agent.synthesizer import _GENERATOR_SYSTEM_PROMPT
from recall_agent.context.builder import RESPONSE_INSTRUCTIONS
from recall_agent.obs.tracing import GroundednessEvaluator


def test_prompts_contain_groundedness_constraints() -> None:
    assert "Ground every statement" in RESPONSE_INSTRUCTIONS
    assert "Do not make up information" in RESPONSE_INSTRUCTIONS
    assert "Ground the answer" in _GENERATOR_SYSTEM_PROMPT
    assert "instead of guessing" in _GENERATOR_SYSTEM_PROMPT


def test_groundedness_evaluator_high_for_supported_answer() -> None:
    evaluator = GroundednessEvaluator(min_overlap=0.3)
    answer = "Access tokens are JWTs that expire after 15 minutes."
    sources = ["Access token: JWT, expires after 15 minutes. Refresh tokens last 7 days."]

    assert evaluator.score(answer, sources) >= 0.95


def test_groundedness_evaluator_flags_unsupported_sentences() -> None:
    evaluator = GroundednessEvaluator()
    answer = "Releases use blue-green deployments. Bananas are yellow fruit."
    sources = ["Releases use a blue-green deployment strategy."]

    assert evaluator.score(answer, sources) == 0.5
    assert evaluator.score(answer, []) == 0.0

import sys

from tutorial_core import MAX_STEPS, RETRIEVAL_STRATEGY, SNIPPET_CHARS, load_tutorial_context
from step_retrieval import select_steps, select_transcript_excerpt


def retrieve_steps(question: str):
    ctx = load_tutorial_context()

    steps = select_steps(question, ctx.steps, max_steps=MAX_STEPS, strategy=RETRIEVAL_STRATEGY)
    excerpt = select_transcript_excerpt(question, ctx.transcript, SNIPPET_CHARS)
    return steps, excerpt


def print_matches(steps, excerpt, max_show=5):
    if not steps:
        print("No steps returned.")

    for i, s in enumerate(steps[:max_show], start=1):
        print("=" * 70)
        print(f"Match #{i}")
        print("Step:", s.get("step", "[missing step]"))
        print("Score:", s.get("score", "n/a (direct or fallback)"))
        print("\nGuidance preview:")
        print(str(s.get("guidance") or "")[:400])

    print("=" * 70)
    if excerpt:
        print("\nTranscript excerpt preview:")
        print(excerpt[:400])
    else:
        print("\n⚠️  NO TRANSCRIPT LOADED")


if __name__ == "__main__":
    question = " ".join(sys.argv[1:]) or "How do I filter the recipient list before running the mail merge?"
    steps, excerpt = retrieve_steps(question)
    print_matches(steps, excerpt)

from collections import Counter

from tutorial_core import DATA_DIR, STEPS_FILE, TRANSCRIPT_FILE, load_tutorial_context


def duplicate_ids(ids):
    # ids may be any JSON value, lists and objects included
    return [i for i, n in Counter(repr(i) for i in ids).items() if n > 1]


def main():
    ctx = load_tutorial_context()

    print("=" * 60)
    print(f"Inspecting tutorial data: {DATA_DIR}")
    print("=" * 60)

    # --- Steps ---
    print(f"\n[{STEPS_FILE}]")
    print(f"Steps loaded: {len(ctx.steps)}")

    ids = [s.get("step") for s in ctx.steps]
    numeric = sorted(i for i in ids if isinstance(i, int))
    if numeric:
        print(f"Step ids: {numeric[0]}..{numeric[-1]}")
        gaps = sorted(set(range(numeric[0], numeric[-1] + 1)) - set(numeric))
        if gaps:
            print(f"Missing ids: {gaps}")

    dupes = duplicate_ids(ids)
    if dupes:
        print(f"Duplicate ids: {dupes}")

    empty = [s.get("step") for s in ctx.steps if not s.get("guidance")]
    if empty:
        print(f"Steps without guidance: {empty}")

    # --- Show a few steps ---
    print("\n[Sample steps]\n")
    for s in ctx.steps[:3]:
        print(f"--- Step {s.get('step')} ---")
        print(f"{str(s.get('guidance') or '')[:200]}...")
        print()

    # --- Transcript ---
    print(f"[{TRANSCRIPT_FILE}]")
    print(f"Transcript chars: {len(ctx.transcript)}")
    if ctx.transcript:
        print(f"Preview: {ctx.transcript[:200]}...")


if __name__ == "__main__":
    main()

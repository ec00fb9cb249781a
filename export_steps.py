import sys
import json
from pathlib import Path

import pandas as pd

from tutorial_core import DATA_DIR, STEPS_FILE

INPUT_CSV = "steps.csv"
OUT_JSON = DATA_DIR / STEPS_FILE


def export_steps(input_csv: str, out_path: Path) -> int:
    df = pd.read_csv(input_csv)

    # Basic cleanup
    df = df.dropna(subset=["step", "guidance"]).copy()
    df["step"] = df["step"].astype(int)
    df["guidance"] = df["guidance"].astype(str).str.strip()

    records = [
        {"step": int(row.step), "guidance": row.guidance}
        for row in df[["step", "guidance"]].itertuples(index=False)
    ]

    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(records, f, ensure_ascii=False, indent=2)
    return len(records)


def main():
    input_csv = sys.argv[1] if len(sys.argv) > 1 else INPUT_CSV
    count = export_steps(input_csv, OUT_JSON)
    print(f"Saved steps: {OUT_JSON} | rows={count}")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""Sample upload generator.

Writes synthetic spreadsheets in the two upload layouts:
- attendance: biometric log export, one row per clock event (Name, Log Date)
- performance: one row per recruiter for a month (fixed 12-column layout + Offered / Placed)

Useful for trying the CLI end to end (``hr-import attendance out/attendance.xlsx``).
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

NAMES = [
    "A. Kumar",
    "J Smith",
    "Priya Nair",
    "Ravi Patel",
    "Sara Lopez",
    "Tom Becker",
]
TEAMS = ["Sourcing", "Delivery", "Accounts"]


def generate_attendance(days: int, seed: int = 42, start: str = "2024-03-01") -> pd.DataFrame:
    """Two to four clock events per employee per working day, 08:30-19:30."""
    rng = np.random.default_rng(seed)
    rows: list[dict[str, object]] = []
    for day in pd.bdate_range(start, periods=days):
        for name in NAMES:
            events = int(rng.integers(2, 5))
            minutes = np.sort(rng.integers(8 * 60 + 30, 19 * 60 + 30, events))
            for m in minutes:
                rows.append({"Name": name, "Log Date": day + pd.Timedelta(minutes=int(m))})
    return pd.DataFrame(rows).sample(frac=1.0, random_state=seed).reset_index(drop=True)


def _duration(seconds: int) -> str:
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h}:{m:02d}:{s:02d}"


def generate_performance(seed: int = 42) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    rows: list[dict[str, object]] = []
    for i, name in enumerate(NAMES):
        calls = int(rng.integers(0, 400))
        rows.append(
            {
                "Team": TEAMS[i % len(TEAMS)],
                "USER NAME": name,
                "Monster": int(rng.integers(0, 50)),
                "Dice": int(rng.integers(0, 50)),
                "LinkedIn Profiles viewed": int(rng.integers(0, 300)),
                "LinkedIn InMails sent": int(rng.integers(0, 120)),
                "Total Calls": calls,
                "Total Call Duration": _duration(calls * int(rng.integers(30, 240))),
                "Total Submissions": int(rng.integers(0, 25)),
                "Total Interviews": int(rng.integers(0, 12)),
                "Offers": int(rng.integers(0, 4)),
                "Starts": int(rng.integers(0, 3)),
                "Offered": ", ".join(f"Candidate {int(c)}" for c in rng.integers(1, 99, int(rng.integers(0, 3)))) or "0",
                "Placed": "0",
            }
        )
    return pd.DataFrame(rows)


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Generate sample attendance / performance uploads")
    p.add_argument("--out", type=Path, default=Path("out"), help="Output directory")
    p.add_argument("--days", type=int, default=5, help="Working days of attendance to generate")
    p.add_argument("--seed", type=int, default=42)
    p.add_argument("--csv", action="store_true", help="Write CSV instead of xlsx")
    args = p.parse_args(argv)

    args.out.mkdir(parents=True, exist_ok=True)
    frames = {
        "attendance": generate_attendance(args.days, seed=args.seed),
        "performance": generate_performance(seed=args.seed),
    }
    for name, df in frames.items():
        if args.csv:
            path = args.out / f"{name}.csv"
            df.to_csv(path, index=False)
        else:
            path = args.out / f"{name}.xlsx"
            df.to_excel(path, index=False, engine="openpyxl")
        print(f"wrote {path} ({len(df)} rows)")
    return 0


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

from ..models.commit_outcome import CommitOutcome

"""Summary line rendering for one import run.

Format:
SUMMARY variant={variant} mode={mode} records={records} succeeded={succeeded}
failed={failed} blocked={blocked} unmatched={unmatched} ambiguous={ambiguous}
elapsed_sec={elapsed}

unmatched / ambiguous break down the blocked records whose name did not resolve
to exactly one employee; they are a subset of blocked.
"""

__all__ = [
    "render_summary_line",
    "format_elapsed",
]


def format_elapsed(seconds: float) -> str:
    """Render elapsed seconds without scientific notation or a trailing ``.0``."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(
    variant: str,
    mode: str,
    records: int,
    outcome: CommitOutcome,
    blocked: int,
    elapsed_seconds: float,
    *,
    unmatched: int = 0,
    ambiguous: int = 0,
) -> str:
    """Render the SUMMARY line printed at the end of an import.

    Args:
        variant: attendance / performance
        mode: replace / upsert (``dry-run`` when nothing was written)
        records: review records built from the file
        outcome: tally returned by the commit engine
        blocked: records and source rows left out of the commit
        elapsed_seconds: wall time of the whole run
        unmatched: blocked records whose name matched no active employee
        ambiguous: blocked records whose name matched several active employees

    Examples:
        >>> from hr_import.models.commit_outcome import CommitOutcome
        >>> render_summary_line("performance", "upsert", 5, CommitOutcome(succeeded=4, failed=1), 0, 2.0)
        'SUMMARY variant=performance mode=upsert records=5 succeeded=4 failed=1 blocked=0 unmatched=0 ambiguous=0 elapsed_sec=2'
    """
    return (
        f"SUMMARY variant={variant} "
        f"mode={mode} "
        f"records={records} "
        f"succeeded={outcome.succeeded} "
        f"failed={outcome.failed} "
        f"blocked={blocked} "
        f"unmatched={unmatched} "
        f"ambiguous={ambiguous} "
        f"elapsed_sec={format_elapsed(elapsed_seconds)}"
    )

"""
ReachInbox - Suggested Reply Smoke Test
========================================
CLI entry point that runs the full RAG pipeline against one email and
prints what it retrieved and drafted:
    1. Load settings (fail-fast on a missing ``GOOGLE_API_KEY``).
    2. Build the pipeline (Gemini embedder + LanceDB index + Gemini LLM).
    3. Generate a suggested reply for the sample email or ``--email-file``.
    4. Print retrieved context, the reply, confidence and timings.

Exit codes:
    0  success
    1  configuration or pipeline failure
    2  knowledge base not seeded

Usage:
    python -m reachinbox.scripts.suggest_reply
    python -m reachinbox.scripts.suggest_reply --email-file inbox/lead.txt --top-k 5
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

# ── Ensure project root is importable when run directly ────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="suggest_reply", description="ReachInbox — draft a grounded reply for one email.")
    parser.add_argument("--email-file", type=Path, default=None, help="Text file holding the email (default: built-in sample).")
    parser.add_argument("--top-k", type=int, default=None, help="Knowledge snippets to retrieve (default: RAG_TOP_K).")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    # ── 0. Load settings + .env ────────────────────────────────────────
    try:
        from reachinbox.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}\n")
        return 1

    from reachinbox.config.prompt_templates import SAMPLE_EMAIL
    from reachinbox.src.core.exceptions import EmptyKnowledgeBaseError, RAGPipelineError
    from reachinbox.src.core.rag_engine import build_pipeline

    if args.top_k is not None and args.top_k < 1:
        print(f"[FATAL] --top-k must be ≥ 1, got {args.top_k}")
        return 1

    try:
        email_text = args.email_file.read_text(encoding="utf-8") if args.email_file else SAMPLE_EMAIL
    except OSError as exc:
        print(f"[FATAL] Cannot read email file '{args.email_file}': {exc}")
        return 1
    _print_header(settings, email_text)

    # ── 1. Build pipeline (timed) ──────────────────────────────────────
    t_build = time.perf_counter()
    try:
        pipeline = build_pipeline(settings, top_k=args.top_k)
    except Exception as exc:
        print(f"\n[FATAL] Could not build the pipeline: {exc}\n")
        return 1
    build_ms = (time.perf_counter() - t_build) * 1000

    # ── 2. Run ─────────────────────────────────────────────────────────
    t_run = time.perf_counter()
    try:
        result = pipeline.generate_suggested_reply(email_text)
    except EmptyKnowledgeBaseError as exc:
        print(f"\n[!] {exc}")
        print(f"    Seed the '{settings.KNOWLEDGE_COLLECTION}' collection at {settings.LANCEDB_PATH} first.\n")
        return 2
    except RAGPipelineError as exc:
        print(f"\n[FATAL] Pipeline failed: {exc}\n")
        return 1
    run_ms = (time.perf_counter() - t_run) * 1000

    # ── 3. Report ──────────────────────────────────────────────────────
    print("Retrieved Context:")
    for i, ctx in enumerate(result.retrieved_context, 1):
        print(f"\n[{i}] Category: {ctx.category} (Score: {ctx.score:.3f})")
        print(ctx.text)

    print("\n" + "=" * 60 + "\n")
    print("Suggested Reply:")
    print(result.suggested_reply)
    print(f"\nConfidence: {result.confidence}%")

    _print_footer(build_ms, run_ms, time.perf_counter() - t_start)
    return 0


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object, email_text: str) -> None:
    print()
    print("=" * 60)
    print("  REACHINBOX — Suggested Reply (RAG)")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                    # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_MODEL}")        # type: ignore[attr-defined]
    print(f"  LLM          : {settings.LLM_MODEL}")              # type: ignore[attr-defined]
    print(f"  LanceDB path : {settings.LANCEDB_PATH}")           # type: ignore[attr-defined]
    print(f"  Collection   : {settings.KNOWLEDGE_COLLECTION}")   # type: ignore[attr-defined]
    print("=" * 60)
    print("\nOriginal Email:")
    print(email_text)
    print("\n" + "=" * 60 + "\n")


def _print_footer(build_ms: float, run_ms: float, elapsed: float) -> None:
    print()
    print("=" * 60)
    print("  TIMING BREAKDOWN")
    print("-" * 60)
    print(f"  Pipeline build       : {build_ms:>8.1f}ms")
    print(f"  Pipeline run         : {run_ms:>8.1f}ms")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    sys.exit(main())

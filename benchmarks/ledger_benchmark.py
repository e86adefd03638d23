"""
Ledger Operation Benchmark.

Measures wall-clock latency of every ledger operation over repeated fresh
scenarios:
1. Mutations: register, create_record, grant, revoke, request_access,
   approve, deny, emergency_access, log_event
2. Reads: is_authorized, get_record, get_request, get_log

Each iteration builds a new in-memory ledger (optionally SQLite-backed)
driven by a manual clock, so timings exclude clock and I/O noise unless
--sqlite is given.

Usage:
    python benchmarks/ledger_benchmark.py --iterations 100
    python benchmarks/ledger_benchmark.py --sqlite --output results.json

Author: Fabio Liberti
"""

import argparse
import json
import logging
import sys
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List

import numpy as np

FRAMEWORK_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(FRAMEWORK_DIR))

from core.models import LedgerConfig, Role  # noqa: E402
from core.utils import ManualClock, hash_justification, setup_logging  # noqa: E402
from ledger import AccessLedger, LedgerDB  # noqa: E402

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = FRAMEWORK_DIR / "benchmarks" / "results" / "ledger_benchmark.json"

ADMIN = "admin"
PATIENT = "patient-1"
PROVIDER = "provider-1"
PROVIDER_2 = "provider-2"
RESPONDER = "responder-1"
AUDITOR = "auditor-1"


# =====================================================================
# DATA STRUCTURES
# =====================================================================

@dataclass
class OperationStats:
    """Latency summary of one operation, in milliseconds."""
    operation: str = ""
    samples: int = 0
    min_ms: float = 0.0
    max_ms: float = 0.0
    mean_ms: float = 0.0
    p95_ms: float = 0.0


@dataclass
class LedgerBenchmarkResults:
    """Complete benchmark results."""
    iterations: int = 0
    sqlite: bool = False
    operations: List[OperationStats] = field(default_factory=list)
    events_per_iteration: int = 0
    generated_at: str = ""
    total_time_seconds: float = 0.0


# =====================================================================
# CORE BENCHMARK FUNCTIONS
# =====================================================================

def _timed(samples: Dict[str, List[float]], name: str, fn: Callable[[], object]):
    start = time.perf_counter()
    result = fn()
    samples.setdefault(name, []).append((time.perf_counter() - start) * 1000.0)
    return result


def run_iteration(samples: Dict[str, List[float]], use_sqlite: bool = False) -> int:
    """
    Run one full scenario on a fresh ledger.

    Returns:
        Number of ledger events committed during the scenario.
    """
    clock = ManualClock()
    db = LedgerDB(":memory:") if use_sqlite else None
    ledger = AccessLedger(LedgerConfig(admin=ADMIN), clock=clock, db=db)

    for principal, role in [
        (PATIENT, Role.PATIENT),
        (PROVIDER, Role.PROVIDER),
        (PROVIDER_2, Role.PROVIDER),
        (RESPONDER, Role.RESPONDER),
        (AUDITOR, Role.AUDITOR),
    ]:
        _timed(samples, "register", lambda: ledger.register(ADMIN, principal, role))

    record = _timed(samples, "create_record", lambda: ledger.create_record(PATIENT, "QmBenchmark"))
    record_id = record.record_id
    clock.advance(1)

    _timed(
        samples,
        "grant",
        lambda: ledger.grant(PATIENT, record_id, PROVIDER, clock() + 3600, "consult"),
    )
    _timed(samples, "is_authorized", lambda: ledger.is_authorized(record_id, PROVIDER))
    _timed(samples, "revoke", lambda: ledger.revoke(PATIENT, record_id, PROVIDER))

    first = _timed(
        samples, "request_access", lambda: ledger.request_access(PROVIDER, record_id, "follow-up")
    )
    second = _timed(
        samples, "request_access", lambda: ledger.request_access(PROVIDER_2, record_id, "referral")
    )
    _timed(samples, "approve", lambda: ledger.approve(PATIENT, first.request_id))
    _timed(samples, "deny", lambda: ledger.deny(PATIENT, second.request_id))
    _timed(samples, "get_request", lambda: ledger.get_request(first.request_id))

    justification = hash_justification("unconscious patient, ER admission")
    _timed(
        samples,
        "emergency_access",
        lambda: ledger.emergency_access(RESPONDER, record_id, justification, 3600),
    )

    _timed(
        samples,
        "log_event",
        lambda: ledger.log_event(AUDITOR, record_id, PROVIDER, True, "READ"),
    )
    _timed(samples, "get_record", lambda: ledger.get_record(record_id))
    _timed(samples, "get_log", lambda: ledger.get_log(record_id))

    event_count = len(ledger.events)
    if db is not None:
        db.close()
    return event_count


def summarize(samples: Dict[str, List[float]]) -> List[OperationStats]:
    stats = []
    for name, values in samples.items():
        arr = np.asarray(values, dtype=float)
        stats.append(OperationStats(
            operation=name,
            samples=int(arr.size),
            min_ms=float(arr.min()),
            max_ms=float(arr.max()),
            mean_ms=float(arr.mean()),
            p95_ms=float(np.percentile(arr, 95)),
        ))
    return stats


def run_ledger_benchmark(iterations: int = 100, use_sqlite: bool = False) -> LedgerBenchmarkResults:
    """Run ``iterations`` fresh scenarios and aggregate the latencies."""
    if iterations < 1:
        raise ValueError("iterations must be at least 1")

    samples: Dict[str, List[float]] = {}
    started = time.perf_counter()
    events = 0
    for i in range(iterations):
        events = run_iteration(samples, use_sqlite=use_sqlite)
        if (i + 1) % max(1, iterations // 10) == 0:
            logger.info("Completed %d/%d iterations", i + 1, iterations)

    return LedgerBenchmarkResults(
        iterations=iterations,
        sqlite=use_sqlite,
        operations=summarize(samples),
        events_per_iteration=events,
        generated_at=datetime.now().isoformat(),
        total_time_seconds=time.perf_counter() - started,
    )


def print_report(results: LedgerBenchmarkResults) -> None:
    print("=" * 64)
    backend = "SQLite" if results.sqlite else "in-memory"
    print(f"Ledger benchmark - {results.iterations} iterations ({backend})")
    print("=" * 64)
    print(f"{'operation':<18}{'n':>6}{'min':>10}{'mean':>10}{'p95':>10}{'max':>10}")
    for op in results.operations:
        print(
            f"{op.operation:<18}{op.samples:>6}"
            f"{op.min_ms:>10.4f}{op.mean_ms:>10.4f}{op.p95_ms:>10.4f}{op.max_ms:>10.4f}"
        )
    print(f"\nEvents per scenario: {results.events_per_iteration}")
    print(f"Total time: {results.total_time_seconds:.2f}s")


# =====================================================================
# Main
# =====================================================================

def main():
    parser = argparse.ArgumentParser(description="Latency benchmark of PrivaMed ledger operations")
    parser.add_argument("--iterations", type=int, default=100,
                        help="Number of fresh scenarios to run")
    parser.add_argument("--sqlite", action="store_true",
                        help="Persist every commit to an in-memory SQLite database")
    parser.add_argument("--output", type=str, default=str(DEFAULT_OUTPUT),
                        help="Path of the JSON results file")
    args = parser.parse_args()

    # Per-operation event logs would dominate the timings
    setup_logging(level="WARNING", log_format="console")
    logger.setLevel(logging.INFO)

    results = run_ledger_benchmark(args.iterations, use_sqlite=args.sqlite)
    print_report(results)

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(asdict(results), f, indent=2)
    print(f"\nResults saved to {output_path}")


if __name__ == "__main__":
    main()

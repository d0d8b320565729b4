"""
Batch classification driver for the LLM File Sorter.

Dispatches batches to the inference endpoint with bounded concurrency and
merges every reconciled result into a single MovePlan.
"""

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Sequence

from tqdm import tqdm

from ..llm.prompts import build_request
from ..models import (
    Batch,
    BatchState,
    ClassificationResult,
    InferenceOutcome,
    MovePlan,
    ParseOutcome,
)
from .reconciler import reconcile

# Seconds between checks for finished batches (keeps Ctrl+C responsive)
_POLL_INTERVAL = 0.5


@dataclass
class ClassificationRun:
    """Everything the classification stage produced."""
    plan: MovePlan = field(default_factory=MovePlan)
    results: list[ClassificationResult] = field(default_factory=list)
    failed_batches: list[str] = field(default_factory=list)
    pending_batches: list[str] = field(default_factory=list)
    interrupted: bool = False

    @property
    def fallback_count(self) -> int:
        return sum(len(r.fallback) for r in self.results)


def classify_batch(batch: Batch, config, client) -> ClassificationResult:
    """Build, send and reconcile one batch. Safe to run on a worker thread."""
    request = build_request(batch, config)
    outcome = client.classify(request)
    return reconcile(batch, outcome, config.taxonomy)


def _merge(run: ClassificationRun, batch: Batch, future: Future, config) -> None:
    try:
        result = future.result()
    except Exception as e:
        # Unexpected worker errors degrade the batch to the fallback label
        tqdm.write(f"[ERROR] {batch.batch_id}: {e}")
        failed = InferenceOutcome(batch_id=batch.batch_id, state=BatchState.FAILED, error=str(e))
        result = reconcile(batch, failed, config.taxonomy)

    run.plan.add_result(batch, result)
    run.results.append(result)

    if result.outcome is ParseOutcome.FAILED:
        run.failed_batches.append(batch.batch_id)
        tqdm.write(f"✗ {batch.batch_id}: {len(batch)} files -> Other (classification failed)")
    else:
        note = f", {len(result.fallback)} defaulted to Other" if result.fallback else ""
        tqdm.write(f"✓ {batch.batch_id}: {len(batch)} files ({result.outcome.value}{note})")


def classify_batches(
    batches: Sequence[Batch],
    config,
    client,
    show_progress: bool = True,
) -> ClassificationRun:
    """
    Classify all batches and merge them into one MovePlan.

    At most config.max_workers requests are in flight; the next batch is only
    dispatched when one finishes. On Ctrl+C no new batch is dispatched,
    in-flight batches are allowed to finish and are merged, and the run is
    marked as interrupted.

    Args:
        batches: Batches in scan order.
        config: The run's SorterConfig.
        client: An InferenceClient (or anything with classify()).
        show_progress: Show a tqdm progress bar.

    Returns:
        ClassificationRun with the merged plan.
    """
    run = ClassificationRun()
    remaining = iter(batches)
    in_flight: dict[Future, Batch] = {}

    pool = ThreadPoolExecutor(max_workers=config.max_workers)
    pbar = tqdm(total=len(batches), unit="batch", disable=not show_progress)

    def submit_next() -> bool:
        batch = next(remaining, None)
        if batch is None:
            return False
        in_flight[pool.submit(classify_batch, batch, config, client)] = batch
        return True

    try:
        for _ in range(config.max_workers):
            if not submit_next():
                break

        while in_flight:
            done, _ = wait(list(in_flight), timeout=_POLL_INTERVAL, return_when=FIRST_COMPLETED)
            for future in done:
                batch = in_flight.pop(future)
                _merge(run, batch, future, config)
                pbar.update(1)
                submit_next()

    except KeyboardInterrupt:
        run.interrupted = True
        tqdm.write(f"[ABORT] Interrupted; finishing {len(in_flight)} in-flight batch(es)...")
        for future, batch in list(in_flight.items()):
            if future.cancel():
                continue
            wait([future])
            _merge(run, batch, future, config)
            pbar.update(1)
        in_flight.clear()

    finally:
        pool.shutdown(wait=True, cancel_futures=True)
        pbar.close()

    run.results.sort(key=lambda r: r.batch_id)
    run.failed_batches.sort()
    merged = {r.batch_id for r in run.results}
    run.pending_batches = [b.batch_id for b in batches if b.batch_id not in merged]
    return run

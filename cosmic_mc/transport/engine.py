"""
Propagation engine: runs candidates through a chain of modules.

Every pass calls process() on each module in order; a pass stops as soon
as the candidate becomes inactive, and the candidate is passed again until
it is inactive. Candidates are independent and are distributed over
worker threads; modules, sources, grids and cosmology tables are shared
read-only.
"""

import logging
import time
from multiprocessing.pool import ThreadPool
from typing import Iterable, List, Optional, Tuple

from tqdm import tqdm

from cosmic_mc.config import SimulationConfig
from cosmic_mc.core.candidate import Candidate
from cosmic_mc.core.rng import Random, make_rng
from cosmic_mc.modules.module import Module
from cosmic_mc.source.source import Source

logger = logging.getLogger(__name__)


def _split(n: int, parts: int) -> List[int]:
    """Sizes of `parts` near-equal slices of n items."""
    base, extra = divmod(n, parts)
    return [base + (1 if i < extra else 0) for i in range(parts)]


class PropagationEngine:
    """
    Main simulation driver.

    Handles:
        - Ordered module chain
        - Step loop until the candidate is inactive
        - Secondaries
        - Per-candidate error isolation
        - Thread-parallel batches

    Example:
        engine = PropagationEngine(SimulationConfig(n_threads=4, seed=1))
        engine.add(SimplePropagation(1 * kpc, 10 * Mpc))
        engine.add(observer)
        engine.add(ConditionalOutput("events.txt"))
        candidates, stats = engine.run_source(source, 10000)
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        """
        Initialize engine.

        Parameters:
            config: Run settings (defaults if None)
        """
        self.config = config if config is not None else SimulationConfig()
        self.modules: List[Module] = []

    def add(self, module: Module) -> "PropagationEngine":
        """Append a module to the chain."""
        self.modules.append(module)
        return self

    def process(self, candidate: Candidate) -> None:
        """One pass over the module chain; stops once the candidate is inactive."""
        for module in self.modules:
            if not candidate.active:
                return
            module.process(candidate)

    def run(self, candidate: Candidate, recursive: Optional[bool] = None) -> bool:
        """
        Propagate a candidate (and optionally all its secondaries) to the end.

        Parameters:
            candidate: Candidate to propagate
            recursive: Propagate secondaries (config default if None)

        Returns:
            True if no candidate of the tree failed
        """
        if recursive is None:
            recursive = self.config.recursive

        ok = True
        pending = [candidate]
        while pending:
            current = pending.pop()
            ok &= self._run_single(current)
            if recursive:
                pending.extend(current.secondaries)
        return ok

    def _run_single(self, candidate: Candidate) -> bool:
        """
        Propagate one candidate, isolating any failure to it.

        A module raising an exception deactivates this candidate and stores
        the error as its 'Error' property; the batch continues.
        """
        steps = 0
        try:
            # bound the first step before any module has seen the candidate
            for module in self.modules:
                module.limit_step(candidate)
            while candidate.active:
                if steps >= self.config.max_steps:
                    logger.warning("Candidate stopped after %d steps: %r", steps, candidate)
                    candidate.active = False
                    break
                self.process(candidate)
                steps += 1
        except Exception as e:  # failure is confined to this candidate
            logger.exception("Propagation failed for %r", candidate)
            candidate.set_property("Error", f"{type(e).__name__}: {e}")
            candidate.active = False
            return False
        return True

    def run_candidates(self, candidates: Iterable[Candidate],
                       recursive: Optional[bool] = None) -> dict:
        """
        Propagate a batch of existing candidates in parallel.

        Parameters:
            candidates: Candidates to propagate (modified in place)
            recursive: Propagate secondaries (config default if None)

        Returns:
            Dictionary with run statistics
        """
        candidates = list(candidates)
        n = len(candidates)
        n_threads = min(self.config.n_threads, max(n, 1))

        logger.info("Propagating %d candidates on %d threads", n, n_threads)
        logger.debug("Module chain:\n%s", self.description)

        start_time = time.time()
        with tqdm(total=n, disable=not self.config.show_progress, unit="cand") as pbar:
            if n_threads == 1:
                results = []
                for candidate in candidates:
                    results.append(self.run(candidate, recursive))
                    pbar.update(1)
            else:
                def work(candidate):
                    ok = self.run(candidate, recursive)
                    pbar.update(1)
                    return ok

                with ThreadPool(n_threads) as pool:
                    results = pool.map(work, candidates)
        elapsed = time.time() - start_time

        return self._statistics(n, results.count(False), elapsed)

    def run_source(self, source: Source, n_candidates: int,
                   recursive: Optional[bool] = None,
                   seed: Optional[int] = None) -> Tuple[List[Candidate], dict]:
        """
        Draw candidates from a source and propagate them in parallel.

        The work is cut into one slice per thread, each with its own random
        stream spawned from the run seed, so a seeded run is reproducible
        for a given thread count.

        Parameters:
            source: Source to draw from
            n_candidates: Number of primary candidates
            recursive: Propagate secondaries (config default if None)
            seed: Run seed (config seed if None)

        Returns:
            (candidates, statistics)
        """
        if n_candidates < 0:
            raise ValueError(f"n_candidates must be non-negative, got {n_candidates}")
        if seed is None:
            seed = self.config.seed

        n_threads = min(self.config.n_threads, max(n_candidates, 1))
        streams = make_rng(seed).spawn(n_threads)
        sizes = _split(n_candidates, n_threads)

        logger.info("Propagating %d candidates from source on %d threads (seed=%s)",
                    n_candidates, n_threads, seed)
        logger.debug("%s", source.description)

        start_time = time.time()
        with tqdm(total=n_candidates, disable=not self.config.show_progress,
                  unit="cand") as pbar:

            def work(item: Tuple[Random, int]):
                rng, size = item
                produced, failed = [], 0
                for _ in range(size):
                    candidate = source.get_candidate(rng)
                    if not self.run(candidate, recursive):
                        failed += 1
                    produced.append(candidate)
                    pbar.update(1)
                return produced, failed

            items = list(zip(streams, sizes))
            if n_threads == 1:
                slices = [work(item) for item in items]
            else:
                with ThreadPool(n_threads) as pool:
                    slices = pool.map(work, items)
        elapsed = time.time() - start_time

        candidates = [c for produced, _ in slices for c in produced]
        n_failed = sum(failed for _, failed in slices)
        return candidates, self._statistics(n_candidates, n_failed, elapsed)

    def _statistics(self, n: int, n_failed: int, elapsed: float) -> dict:
        rate = n / elapsed if elapsed > 0 else float("inf")
        if n_failed:
            logger.warning("%d of %d candidates failed", n_failed, n)
        logger.info("Propagation complete: %d candidates in %.1fs (%.0f/s)", n, elapsed, rate)
        return {
            'n_candidates': n,
            'n_failed': n_failed,
            'elapsed_time': elapsed,
            'candidates_per_sec': rate,
        }

    @property
    def description(self) -> str:
        lines = ["PropagationEngine"]
        for i, module in enumerate(self.modules):
            lines.append(f"  {i}. " + module.description.replace("\n", "\n     "))
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"PropagationEngine(modules={len(self.modules)})"

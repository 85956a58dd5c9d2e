import multiprocessing as mp
from typing import Any, Dict, List

from tqdm import tqdm

from .parts import expand_call


def process_jobs_(jobs: List[Dict[str, Any]], verbose: bool = False) -> List[Any]:
    """Run jobs sequentially in this process, for debugging and num_threads=1."""
    iterator = tqdm(jobs) if verbose else jobs
    return [expand_call(job) for job in iterator]


def process_jobs(jobs: List[Dict[str, Any]], num_threads: int = 1, verbose: bool = False) -> List[Any]:
    """
    Run jobs in a process pool.

    Each job is a dict holding 'func' plus its keyword arguments. Outputs keep
    the order of `jobs`. Exceptions raised by a job propagate to the caller.
    """
    if num_threads <= 1 or len(jobs) <= 1:
        return process_jobs_(jobs, verbose=verbose)

    with mp.Pool(processes=min(num_threads, len(jobs))) as pool:
        outputs = pool.imap(expand_call, jobs)
        if verbose:
            outputs = tqdm(outputs, total=len(jobs))
        return list(outputs)

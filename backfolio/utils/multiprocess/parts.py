import numpy as np


def lin_parts(num_atoms: int, num_threads: int) -> np.ndarray:
    """
    Boundaries splitting `num_atoms` independent items into at most
    `num_threads` contiguous chunks of near-equal size.
    """
    parts = np.linspace(0, num_atoms, min(num_threads, num_atoms) + 1)
    parts = np.ceil(parts).astype(int)
    return parts


def expand_call(kargs: dict):
    """Run kargs['func'] with the remaining entries as keyword arguments."""
    kargs = dict(kargs)
    func = kargs.pop('func')
    return func(**kargs)

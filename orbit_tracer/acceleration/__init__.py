"""Numba kernels and the multiprocessing accumulator."""

"""Performance benchmarks for npbayes.

This package contains microbenchmarks for hot paths in the library,
including Gibbs sweeps of the sequential and parallel DPMM samplers and
adaptive rejection sampling.
"""

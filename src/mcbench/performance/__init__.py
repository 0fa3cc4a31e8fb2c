"""
performance - Benchmarking methodology for interpreted numeric code

    benchmarks  - Timing harness (repeated runs with summary statistics,
                  tracemalloc memory profiling, side-by-side comparison) and
                  the scenarios that exercise it: scalar-loop vs vectorized
                  Monte Carlo estimation, growing an array vs pre-allocating
                  it, and loop vs vectorized summation.

The point of every scenario is the same: in an interpreted language the cost
of a computation is dominated less by its asymptotic complexity than by how
many times control passes through the interpreter.  Moving the loop into a
single compiled call is usually the largest available win.
"""

"""Load-testing helpers: throttling, worker pools, round-robin clients, leaf readers and writers, and result analysis."""
"""simulation — Randomized progression traversal and batch statistics.

This package runs trials over a ``GraphDefinition`` and reduces many
of them to descriptive statistics.  Everything is single-threaded; long
runs are cut into cooperative work units executed by ``TaskQueue``.

Submodules
----------
traversal   TraversalState, reset / step / visit — the traversal engine
aggregate   AggregateState, aggregate_traversal, process — statistics
scheduler   TaskQueue — cooperative time-budgeted work queue
trials      Debug and aggregate runs as schedulable work units
"""

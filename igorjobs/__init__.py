"""igorjobs - run GameMaker's Igor toolchain as tracked, cancellable jobs.

Spawns Igor for a project, streams its output, stops whole process trees on
request and extracts structured diagnostics when a job ends.
"""

__version__ = "0.3.0"

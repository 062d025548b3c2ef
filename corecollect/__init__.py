"""corecollect

Core package namespace for the coredump collector.

Why this exists
---------------
The runtime is organized under top-level packages like ``tools`` (external
programs) and ``pipeline`` (the processing core). This package owns the parts
both sides agree on:

* domain types (coredump candidates, artifact sections, step outcomes)
* IO/layout rules (where artifacts land and how names are sanitized)

It must not import from ``tools`` or ``pipeline``.
"""

from __future__ import annotations

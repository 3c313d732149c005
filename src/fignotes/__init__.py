"""FigNotes - design review command center.

Reconciles design-review comments with locally persisted task metadata and
derives flow health and ship-readiness metrics.
"""

__version__ = "0.3.0"

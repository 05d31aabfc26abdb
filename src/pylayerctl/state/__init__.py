"""State/store layer.

This package is the single source of truth for every tracked layer's
visibility, opacity, name and group. Reconciliation and the mutation
funnel are the only writers.
"""

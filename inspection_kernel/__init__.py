"""
Inspection Kernel

The core of the vehicle inspection workflow:
- Inspection state machine with conditional, race-safe transitions
- Table-driven role authorization
- Archived approval history (one current decision per inspection)
- Named read projections for detail, listing and PDF export
"""

__version__ = "0.1.0"

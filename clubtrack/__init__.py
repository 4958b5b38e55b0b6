"""
Club Tracking - evaluation test capture and attendance reconciliation.

Client-side engine for the club management REST backend:
- Test capture against an evaluation session for a selected athlete
- Attendance roster reconciliation and bulk upsert
- Query cache invalidation after mutations
"""

__version__ = "1.0.0"

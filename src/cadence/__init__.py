"""
Cadence - task intelligence for a personal companion app.

Turns freeform captures into prioritized, scheduled tasks and answers
"what is the one thing today?".
"""

__version__ = "0.1.0"

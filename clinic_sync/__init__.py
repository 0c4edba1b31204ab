"""
Clinic calendar sync backend.

Keeps clinic appointments and the connected Google Calendar in step.
"""

__version__ = "1.0.0"

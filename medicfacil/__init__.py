"""
MedicFácil - medication reminders for elderly and accessibility-focused users.
"""

__version__ = "0.1.0"

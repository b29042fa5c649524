"""
HealthPod - Personal health record import/export toolkit.

Imports, exports and edits personal health observations (blood pressure,
medication, vaccination, appointments) stored as encrypted per-record files
in a personal data store.
"""

__version__ = "0.1.0"

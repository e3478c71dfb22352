"""
Clinic visit lifecycle and diagnosis-history engine.

Derives effective visit statuses, keeps the diagnosis history of each visit,
time-boxes secretary edits and admits patients into the day's queue.
"""

__version__ = "0.1.0"

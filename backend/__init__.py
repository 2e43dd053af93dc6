"""
Wingmann Engine - Submission Backend

FastAPI service for the wingmann questionnaire.
Persists submissions to a blob store and keeps CSV/XLSX exports in sync.
"""

__version__ = "1.0.0"

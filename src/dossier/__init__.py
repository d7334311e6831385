"""
Dossier - browser automation for batch admissions decisions.

Drives the remote records system through:
- Accept/reject recommendations
- Overview document merge and download
- Resumable batches with per-record failure isolation
"""

__version__ = "0.1.0"

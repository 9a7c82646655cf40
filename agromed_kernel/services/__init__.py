"""Kernel write services."""

from agromed_kernel.services.base import BaseService
from agromed_kernel.services.submission_store import SqlSubmissionStore

__all__ = ["BaseService", "SqlSubmissionStore"]

"""Read-only query selectors."""

from agromed_kernel.selectors.base import BaseSelector
from agromed_kernel.selectors.catalog_selector import CatalogSelector
from agromed_kernel.selectors.submission_selector import SubmissionSelector

__all__ = ["BaseSelector", "CatalogSelector", "SubmissionSelector"]

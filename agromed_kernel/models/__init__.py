"""SQLAlchemy ORM models for the agromed kernel."""

from agromed_kernel.models.activity_log import ActivityLogModel
from agromed_kernel.models.medicine import MedicineModel, StockLotModel
from agromed_kernel.models.submission import SubmissionItemModel, SubmissionModel

__all__ = [
    "ActivityLogModel",
    "MedicineModel",
    "StockLotModel",
    "SubmissionItemModel",
    "SubmissionModel",
]

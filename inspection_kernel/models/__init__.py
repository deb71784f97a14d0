"""ORM models for the inspection kernel."""

from inspection_kernel.models.approval import InspectionApprovalModel
from inspection_kernel.models.inspection import InspectionModel, InspectionPhotoModel
from inspection_kernel.models.user import UserModel
from inspection_kernel.models.vehicle import VehicleModel

__all__ = [
    "InspectionApprovalModel",
    "InspectionModel",
    "InspectionPhotoModel",
    "UserModel",
    "VehicleModel",
]

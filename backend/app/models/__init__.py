from app.models.employee import Employee, SystemRole
from app.models.service_definition import ServiceDefinition, ApprovalStepType, FieldType
from app.models.request import Request, RequestHistory, RequestStatus

__all__ = [
    "Employee", "SystemRole",
    "ServiceDefinition", "ApprovalStepType", "FieldType",
    "Request", "RequestHistory", "RequestStatus",
]

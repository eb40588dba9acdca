"""HTTP clients for the hosted collaborators of the directive core."""

from .course_services import CourseServicesClient, CourseServicesConfig, ServiceError
from .remote_store import RemoteSessionClient

__all__ = [
    "CourseServicesClient",
    "CourseServicesConfig",
    "RemoteSessionClient",
    "ServiceError",
]

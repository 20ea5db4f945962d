"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class UserRole(str, Enum):
    """Account role"""
    STUDENT = "STUDENT"
    FACULTY = "FACULTY"
    STAFF = "STAFF"
    ADMIN = "ADMIN"


class RequestStatus(str, Enum):
    """
    Service request status
    
    Pending -> In Progress -> Completed, with Rejected reachable from any
    state. Transitions are not constrained.
    """
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    REJECTED = "Rejected"


class RequestCategory(str, Enum):
    """Service request category"""
    FACILITIES = "Facilities"  # Broken chairs, lights, windows
    SANITATION = "Sanitation"  # Cleaning
    ACADEMIC_DOCS = "Academic Docs"  # Document requests
    OTHER = "Other"


class CollectionName(str, Enum):
    """Synchronized collections"""
    REQUESTS = "requests"
    USERS = "users"

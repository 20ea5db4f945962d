"""Service modules - Business logic layer"""
from .classifier_service import ClassifierService, Classification
from .request_service import RequestService
from .user_service import UserService

__all__ = [
    "ClassifierService",
    "Classification",
    "RequestService",
    "UserService",
]

"""Default administrator - guarantees an operator can always sign in"""
from typing import Callable, List

from .reconcile import InvariantResult, Record
from ..config.settings import settings
from ..domain.enums import UserRole
from ..domain.models import User
from ..utils.logger import get_logger
from ..utils.security import hash_password

logger = get_logger(__name__)


def build_default_admin() -> User:
    """The reserved administrator account from settings"""
    return User(
        id=settings.default_admin_id,
        name=settings.default_admin_name,
        email=settings.default_admin_email.strip().lower(),
        role=UserRole.ADMIN,
        is_verified=True,
        password_hash=hash_password(settings.default_admin_password),
    )


def is_admin_email(email: object, admin_email: str) -> bool:
    return isinstance(email, str) and email.strip().lower() == admin_email.strip().lower()


def ensure_default_admin(
    records: List[Record],
    admin_email: str,
    build_admin: Callable[[], User] = build_default_admin
) -> InvariantResult:
    """
    Make exactly one user carry the reserved admin email, as a verified Admin.
    
    Missing: the default admin is synthesized and queued for writing.
    Present but not Admin/verified: repaired in place, keeping its id.
    Several with the email: the first Admin (else the first) is kept and the
    others are queued for deletion.
    """
    matches = [record for record in records if is_admin_email(record.get("email"), admin_email)]
    
    if not matches:
        admin = build_admin().model_dump(mode="json")
        logger.info("Default administrator missing, synthesizing it", extra={"user_id": admin["id"]})
        return InvariantResult(records=records + [admin], puts=[admin])
    
    keeper = next((r for r in matches if r.get("role") == UserRole.ADMIN.value), matches[0])
    puts: List[Record] = []
    repaired = keeper
    if keeper.get("role") != UserRole.ADMIN.value or keeper.get("is_verified") is not True:
        repaired = {**keeper, "role": UserRole.ADMIN.value, "is_verified": True}
        puts.append(repaired)
        logger.info("Repairing default administrator record", extra={"user_id": keeper.get("id")})
    
    kept: List[Record] = []
    deletes: List[str] = []
    for record in records:
        if record is keeper:
            kept.append(repaired)
        elif any(record is match for match in matches):
            deletes.append(record["id"])
        else:
            kept.append(record)
    
    if deletes:
        logger.warning(f"Removing {len(deletes)} duplicate administrator record(s)")
    return InvariantResult(records=kept, puts=puts, deletes=deletes)

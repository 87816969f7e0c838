# taskup/organization/organization_router.py

import logging
import re
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskup.auth.auth_router import get_current_user
from taskup.database import get_db
from taskup.errors import ForbiddenError, InvalidRequestError, NotFoundError
from taskup.models.organization import MANAGER_ROLES, Member, Organization
from taskup.models.user import User
from taskup.schemas.organization_schema import (
    MemberAdd,
    MemberRead,
    OrganizationCreate,
    OrganizationRead,
)

router = APIRouter(prefix="/organizations", tags=["organizations"])

logger = logging.getLogger("taskup.organization")


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "org"


def _get_membership(db: Session, organization_id: int, user_id: int) -> Member:
    member = (
        db.query(Member)
        .filter(Member.organization_id == organization_id, Member.user_id == user_id)
        .first()
    )
    if not member:
        raise NotFoundError("Organization not found")
    return member


# ==========================
#  CREATE ORGANIZATION
# ==========================
@router.post("/", response_model=OrganizationRead, status_code=201)
def create_organization(
    data: OrganizationCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    slug = slugify(data.slug or data.name)
    if db.query(Organization).filter(Organization.slug == slug).first():
        if data.slug:
            raise InvalidRequestError("Slug already taken")
        slug = f"{slug}-{uuid.uuid4().hex[:6]}"

    organization = Organization(name=data.name, slug=slug)
    db.add(organization)
    db.flush()

    db.add(Member(organization_id=organization.id, user_id=user.id, role="owner"))
    # the creator starts working in the new organization
    user.active_organization_id = organization.id

    db.commit()
    db.refresh(organization)
    logger.info("organization_created", extra={"organization_id": organization.id, "user_id": user.id})
    return organization


# ==========================
#  MY ORGANIZATIONS
# ==========================
@router.get("/", response_model=list[OrganizationRead])
def list_organizations(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return (
        db.query(Organization)
        .join(Member, Member.organization_id == Organization.id)
        .filter(Member.user_id == user.id)
        .order_by(Organization.id)
        .all()
    )


# ==========================
#  SWITCH ACTIVE ORGANIZATION
# ==========================
@router.post("/{organization_id}/activate", response_model=OrganizationRead)
def activate_organization(
    organization_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    member = _get_membership(db, organization_id, user.id)

    user.active_organization_id = member.organization_id
    db.commit()
    return db.get(Organization, organization_id)


# ==========================
#  MEMBERS
# ==========================
@router.get("/{organization_id}/members", response_model=list[MemberRead])
def list_members(
    organization_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _get_membership(db, organization_id, user.id)

    members = (
        db.query(Member)
        .filter(Member.organization_id == organization_id)
        .order_by(Member.id)
        .all()
    )
    return [
        MemberRead(user_id=m.user_id, email=m.user.email, name=m.user.name, role=m.role)
        for m in members
    ]


@router.post("/{organization_id}/members", response_model=MemberRead, status_code=201)
def add_member(
    organization_id: int,
    data: MemberAdd,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    current = _get_membership(db, organization_id, user.id)
    if current.role not in MANAGER_ROLES:
        raise ForbiddenError("Only owners and admins can add members")

    invitee = db.query(User).filter(User.email == data.email).first()
    if not invitee:
        raise NotFoundError("User not found")

    exists = (
        db.query(Member)
        .filter(Member.organization_id == organization_id, Member.user_id == invitee.id)
        .first()
    )
    if exists:
        raise InvalidRequestError("User is already a member")

    member = Member(organization_id=organization_id, user_id=invitee.id, role=data.role)
    db.add(member)
    if invitee.active_organization_id is None:
        invitee.active_organization_id = organization_id

    db.commit()
    return MemberRead(user_id=invitee.id, email=invitee.email, name=invitee.name, role=member.role)

"""
Household subjects: the owner (subject_id = None) and their dependents.

Identity resolution itself is external; this module only reads the
profiles the engine needs (birth date, gender) and enumerates dependents
when the caller does not supply subject ids.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from careloop.models.care_account import CareAccount
from careloop.models.dependent import Dependent


@dataclass
class SubjectProfile:
    subject_id: Optional[int]
    name: Optional[str]
    birth_date: Optional[date]
    gender: Optional[str]


def get_subject_profile(
    db: Session,
    owner_user_id: int,
    subject_id: Optional[int],
) -> Optional[SubjectProfile]:
    """Profile of the owner (subject_id None) or of one of their dependents."""
    if subject_id is None:
        account = db.get(CareAccount, owner_user_id)
        if account is None:
            return None
        return SubjectProfile(
            subject_id=None,
            name=account.display_name,
            birth_date=account.birth_date,
            gender=account.gender,
        )

    dependent = (
        db.query(Dependent)
        .filter(Dependent.id == subject_id, Dependent.owner_user_id == owner_user_id)
        .first()
    )
    if dependent is None:
        return None
    return SubjectProfile(
        subject_id=dependent.id,
        name=dependent.name,
        birth_date=dependent.birth_date,
        gender=dependent.gender,
    )


def list_dependent_ids(db: Session, owner_user_id: int) -> list[int]:
    rows = (
        db.query(Dependent.id)
        .filter(Dependent.owner_user_id == owner_user_id)
        .order_by(Dependent.id)
        .all()
    )
    return [row.id for row in rows]


def list_owner_ids(db: Session) -> list[int]:
    rows = db.query(CareAccount.owner_user_id).order_by(CareAccount.owner_user_id).all()
    return [row.owner_user_id for row in rows]

"""
Read-only repositories over PUBLIC_INFO and SECRET_INFO.
"""
from typing import Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from resource_server.models import Base, PublicInfo, SecretInfo

ModelT = TypeVar("ModelT", bound=Base)


class ReadOnlyRepository(Generic[ModelT]):
    model: type[ModelT]

    def __init__(self, db: Session):
        self.db = db

    def find_all(self) -> list[ModelT]:
        return list(self.db.scalars(select(self.model).order_by(self.model.resource_id)))


class PublicInfoRepository(ReadOnlyRepository[PublicInfo]):
    model = PublicInfo


class SecretInfoRepository(ReadOnlyRepository[SecretInfo]):
    model = SecretInfo

"""
Resource service: contents of the public and secret tables, blank entries dropped.
"""
from typing import Annotated, Iterable

from fastapi import Depends
from sqlalchemy.orm import Session

from resource_server.database import get_db
from resource_server.repositories import PublicInfoRepository, SecretInfoRepository


def _non_blank_contents(rows: Iterable) -> list[str]:
    return [row.contents for row in rows if row.contents and row.contents.strip()]


class ResourceService:
    def __init__(self, public_repo: PublicInfoRepository, secret_repo: SecretInfoRepository):
        self.public_repo = public_repo
        self.secret_repo = secret_repo

    def retrieve_public_info(self) -> list[str]:
        return _non_blank_contents(self.public_repo.find_all())

    def retrieve_secret_info(self) -> list[str]:
        return _non_blank_contents(self.secret_repo.find_all())


def get_resource_service(db: Annotated[Session, Depends(get_db)]) -> ResourceService:
    """Dependency: service bound to the request's DB session."""
    return ResourceService(PublicInfoRepository(db), SecretInfoRepository(db))

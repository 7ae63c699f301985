"""Tests for the read-only repositories and the resource service."""
import pytest

from resource_server.database import SessionLocal, init_db
from resource_server.models import PublicInfo, SecretInfo
from resource_server.repositories import PublicInfoRepository, SecretInfoRepository
from resource_server.service import ResourceService


@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    try:
        session.query(PublicInfo).delete()
        session.query(SecretInfo).delete()
        session.commit()
        yield session
    finally:
        session.close()


def test_find_all_returns_rows_in_insert_order(db):
    db.add_all([PublicInfo(contents="first"), PublicInfo(contents="second")])
    db.commit()
    rows = PublicInfoRepository(db).find_all()
    assert [r.contents for r in rows] == ["first", "second"]
    assert all(r.create_dt is not None for r in rows)


def test_find_all_empty(db):
    assert SecretInfoRepository(db).find_all() == []


def test_service_drops_blank_contents(db):
    db.add_all([
        PublicInfo(contents="kept"),
        PublicInfo(contents=""),
        PublicInfo(contents="\t \n"),
        PublicInfo(contents=None),
        SecretInfo(contents="classified"),
        SecretInfo(contents=" "),
    ])
    db.commit()
    service = ResourceService(PublicInfoRepository(db), SecretInfoRepository(db))
    assert service.retrieve_public_info() == ["kept"]
    assert service.retrieve_secret_info() == ["classified"]


def test_service_keeps_surrounding_whitespace_of_non_blank_contents(db):
    db.add(PublicInfo(contents="  padded  "))
    db.commit()
    service = ResourceService(PublicInfoRepository(db), SecretInfoRepository(db))
    assert service.retrieve_public_info() == ["  padded  "]

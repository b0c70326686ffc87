# tests/conftest.py
from datetime import date

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import models  # noqa: F401
from models.project import Project
from models.user import User
from utils.templates import create_template


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture()
def user(session):
    u = User(email="surveyor@example.com", name="Surveyor")
    session.add(u)
    session.commit()
    session.refresh(u)
    return u


@pytest.fixture()
def catalog(session):
    """Small template catalog:

    Pekerjaan Persiapan
      Pembersihan lokasi        (w 10)
      Pengukuran                (w 30)
    Pekerjaan Struktur
      Pondasi
        Galian tanah            (w 20)
        Urugan pasir            (w 40)
    """
    prep = create_template(session, "Pekerjaan Persiapan")
    clean = create_template(session, "Pembersihan lokasi", volume=100, unit="m2", price=15000, weight=10,
                            parent_id=prep.id)
    survey = create_template(session, "Pengukuran", volume=1, unit="ls", price=2500000, weight=30,
                             parent_id=prep.id)
    struct = create_template(session, "Pekerjaan Struktur")
    found = create_template(session, "Pondasi", parent_id=struct.id)
    dig = create_template(session, "Galian tanah", volume="12.5", unit="m3", price="85000.50", weight=20,
                          parent_id=found.id)
    sand = create_template(session, "Urugan pasir", volume=4, unit="m3", price=210000, weight=40,
                           parent_id=found.id)
    return {
        "prep": prep, "clean": clean, "survey": survey,
        "struct": struct, "found": found, "dig": dig, "sand": sand,
    }


@pytest.fixture()
def project(session):
    p = Project(name="Gedung Kodim", start_date=date(2025, 1, 1), end_date=date(2025, 6, 30))
    session.add(p)
    session.commit()
    session.refresh(p)
    return p

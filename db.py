# db.py

#============================================================#
#                           LAPJU                            #
#============================================================#
# Created     : 2025-10-15                                   #
# Version     : V1.0.0                                       #
#------------------------------------------------------------#
# Purpose     : Construction progress tracker: template task #
#               trees cloned per project, daily leaf         #
#               progress, rollups and S-curve charts         #
#               (SQLite/Postgres powered)                    #
#                                                            #
# Change Log  :                                              #
#  - V1.0.0 (2025-10-15): Initial release.                   #
#============================================================#

import logging
import os
from typing import Dict, Optional

from sqlmodel import SQLModel, Session, create_engine, select

import models  # noqa: F401  registers every table on SQLModel.metadata
from models.user import User

logger = logging.getLogger(__name__)

# ---- Engine / Session ----
try:
    import streamlit as st
    _secrets = dict(st.secrets)
except Exception:
    # no secrets.toml, or running outside Streamlit
    _secrets = {}

DATABASE_URL = (_secrets.get("DATABASE_URL")
                or os.getenv("DATABASE_URL")
                or "sqlite:///lapju.db")

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=_connect_args)


def get_session() -> Session:
    return Session(engine)


def init_db(bind=None):
    SQLModel.metadata.create_all(bind or engine)
    logger.info("Schema ready on %s", (bind or engine).url)


def get_or_create_user(session: Session, email: str, name: Optional[str] = None) -> User:
    email = email.strip().lower()
    user = session.exec(select(User).where(User.email == email)).first()
    if not user:
        user = User(email=email, name=name)
        session.add(user)
        session.commit()
        session.refresh(user)
    return user


# ---- helpers ----
def login(email: str, name: Optional[str] = None) -> Dict:
    with get_session() as s:
        user = get_or_create_user(s, email, name)
        return {"id": user.id, "email": user.email, "name": user.name}

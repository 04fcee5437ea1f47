# database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from config import DATABASE_URL
from models.store import Base

def _make_engine(url: str):
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {}
    )

engine = _make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)

def make_session_factory(url: str):
    """
    별도 DB URL(테스트용 임시 sqlite 등)에 대한 세션 팩토리를 만들고 테이블을 생성한다.
    """
    eng = _make_engine(url)
    init_db(eng)
    return sessionmaker(autocommit=False, autoflush=False, bind=eng)

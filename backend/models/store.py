# models/store.py
from sqlalchemy import Column, Integer, DateTime, Text
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()

# 저장소 문서(사용자 맵 + 리마인더 목록)는 항상 id=1 한 행에 통째로 기록함
STORE_ROW_ID = 1

class StoreSnapshot(Base):
    __tablename__ = "assistant_store"
    id = Column(Integer, primary_key=True)
    payload = Column(Text, nullable=False)  # StoreDocument JSON
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

"""
Database tables for the generation pipeline.
Uses SQLite with SQLAlchemy locally; the same column names are used by the
Supabase tables so both stores read and write identical rows.
"""

from datetime import datetime

from sqlalchemy import create_engine, Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


class CreationJobRow(Base):
    """A request to produce one pod."""
    __tablename__ = 'podcast_creation_jobs'

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False)
    payload = Column(JSON, default=dict)

    status = Column(String(20), default='pending')  # pending, processing, completed, failed
    micro_pod_id = Column(Integer, ForeignKey('micro_pods.id'), nullable=True)
    error_message = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('idx_job_user', 'user_id'),
        Index('idx_job_status', 'status'),
    )


class MicroPodRow(Base):
    """The generated content record."""
    __tablename__ = 'micro_pods'

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False)
    title = Column(String(300), nullable=False)
    script_text = Column(Text)  # JSON: {"script_body", "script_plain"}

    status = Column(String(30), default='pending_approval')
    processing_status = Column(String(20), default='pending')

    audio_ready = Column(Boolean, default=False)
    image_ready = Column(Boolean, default=False)
    audio_url = Column(String(500))
    cover_image_url = Column(String(500))
    duration_seconds = Column(Integer, default=0)

    sources = Column(JSON, default=list)
    parent_id = Column(Integer, ForeignKey('micro_pods.id'), nullable=True)
    creation_data = Column(JSON, default=dict)
    redispatch_count = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('idx_pod_user', 'user_id'),
        Index('idx_pod_processing', 'processing_status', 'updated_at'),
    )


class PodEmbeddingRow(Base):
    """Semantic embedding of a pod's script."""
    __tablename__ = 'podcast_embeddings'

    id = Column(Integer, primary_key=True)
    podcast_id = Column(Integer, ForeignKey('micro_pods.id'), nullable=False)
    embedding = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_embedding_pod', 'podcast_id'),
    )


class GeoDraftRow(Base):
    """Staging record for location-triggered input."""
    __tablename__ = 'geo_drafts_staging'

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False)
    detected_place_id = Column(String(200), nullable=False)
    weather_snapshot = Column(JSON, default=dict)

    status = Column(String(20), default='scanning')  # scanning, analyzing, rejected
    rejection_reason = Column(Text)
    user_intent_text = Column(Text)
    content_type = Column(String(50))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


def init_db(database_url: str = 'sqlite:///podforge.sqlite'):
    """Initialize the database and create missing tables."""
    connect_args = {}
    kwargs = {}
    if database_url.startswith('sqlite'):
        connect_args = {'check_same_thread': False}  # Required for SQLite with threading
        if database_url in ('sqlite://', 'sqlite:///:memory:'):
            kwargs['poolclass'] = StaticPool

    engine = create_engine(database_url, echo=False, connect_args=connect_args, **kwargs)
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine):
    """Get a session factory bound to the engine."""
    return sessionmaker(bind=engine, expire_on_commit=False)

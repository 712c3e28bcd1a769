from sqlalchemy import Column, String, Float, JSON, Index

from app.db.database import Base


# ============== Census Cache ==============

class CensusCacheEntry(Base):
    __tablename__ = "census_cache_entries"

    key = Column(String(64), primary_key=True)  # cache prefix + zip
    zip = Column(String(5), nullable=False, index=True)
    data = Column(JSON, nullable=False)
    expiry = Column(Float, nullable=False)  # epoch seconds
    cached_at = Column(Float, nullable=False)

    __table_args__ = (
        Index("ix_census_cache_entries_expiry", "expiry"),
    )


# ============== Analysis Rings ==============

class AnalysisRing(Base):
    __tablename__ = "analysis_rings"

    id = Column(String(64), primary_key=True)
    center_lat = Column(Float, nullable=False)
    center_lng = Column(Float, nullable=False)
    radii = Column(JSON, nullable=False)  # {"inner": mi, "middle": mi, "outer": mi}
    stats = Column(JSON, nullable=True)  # Last computed stats, for redisplay before a refresh
    weighted_stats = Column(JSON, nullable=True)
    locations = Column(JSON, nullable=True)
    created_at = Column(Float, nullable=False, index=True)


# ============== Layer Preferences ==============

class LayerPreference(Base):
    __tablename__ = "layer_preferences"

    id = Column(String(36), primary_key=True)
    flags = Column(JSON, nullable=False, default=dict)

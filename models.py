from sqlalchemy import Column, Integer, String, ForeignKey, Date, DateTime, Float, UniqueConstraint, Index
from sqlalchemy.orm import relationship, declarative_base
from datetime import datetime

Base = declarative_base()


class ProjectRow(Base):
    __tablename__ = "projects"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    status = Column(String, nullable=True)

    stages = relationship("StageRow", back_populates="project", cascade="all, delete-orphan")


class StageRow(Base):
    __tablename__ = "stages"
    id = Column(String, primary_key=True)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False)
    name = Column(String, nullable=False)
    status = Column(String, nullable=True)

    project = relationship("ProjectRow", back_populates="stages")
    tasks = relationship("TaskRow", back_populates="stage", cascade="all, delete-orphan")


class TaskRow(Base):
    __tablename__ = "tasks"
    id = Column(String, primary_key=True)
    stage_id = Column(String, ForeignKey("stages.id"), nullable=False)
    name = Column(String, nullable=False)
    status = Column(String, nullable=True)

    stage = relationship("StageRow", back_populates="tasks")


class WorkDayRow(Base):
    """Clocked total for one user and date. Status is never stored; it is derived on read."""

    __tablename__ = "work_days"
    __table_args__ = (UniqueConstraint("user_id", "work_date", name="uq_work_day_user_date"),)
    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False)
    work_date = Column(Date, nullable=False)
    total_hours = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class AllocationRow(Base):
    __tablename__ = "allocations"
    __table_args__ = (Index("ix_allocations_user_date", "user_id", "work_date"),)
    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False)
    work_date = Column(Date, nullable=False)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False)
    stage_id = Column(String, ForeignKey("stages.id"), nullable=True)
    task_id = Column(String, ForeignKey("tasks.id"), nullable=True)
    worked_hours = Column(Float, nullable=False, default=0.0)
    position = Column(Integer, nullable=False, default=0)
    description = Column(String)
    created_at = Column(DateTime, default=datetime.now)

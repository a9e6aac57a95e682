"""ORM Models for the PMS generator — SQLAlchemy 2.0"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import (
    String, Text, Boolean, Integer, Float, Numeric, DateTime,
    ForeignKey, UniqueConstraint, Index, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from app.db import Base


class ProjectScoped:
    """
    Overlay scope column shared by every domain value table.
    project_id IS NULL  -> global default row
    project_id = <id>   -> project-specific override
    """
    project_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), index=True
    )


def default_unique(name: str, *keys, scope: str = "project_id") -> Index:
    """
    Unique index over the natural key of the global default rows.
    NULLs are distinct in (scope, key) constraints, so the default tier
    needs its own partial index.
    """
    where = text(f"{scope} IS NULL")
    return Index(name, *keys, unique=True, postgresql_where=where, sqlite_where=where)


# ── PROJECTS & SPECS ──────────────────────────────────────────────────────────
# CRUD for these lives outside this service; the engine only reads them.
class Project(Base):
    __tablename__ = "projects"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_name: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    specs: Mapped[list["Spec"]] = relationship("Spec", back_populates="project")


class Spec(Base):
    __tablename__ = "specs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id", ondelete="CASCADE"))
    spec_name: Mapped[str] = mapped_column(String(50), nullable=False)
    rating: Mapped[Optional[str]] = mapped_column(String(10))
    base_material: Mapped[Optional[str]] = mapped_column(String(255))
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    project: Mapped["Project"] = relationship("Project", back_populates="specs")


# ── COMPONENT TYPES ───────────────────────────────────────────────────────────
class Component(Base):
    __tablename__ = "components"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # PIPE | TEE | REDUCER | COUPLING | FLANGE | OLET | VALV | ...
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    rating_required: Mapped[bool] = mapped_column(Boolean, default=False)


# ── OVERLAID DOMAIN VALUES ────────────────────────────────────────────────────
class ComponentDesc(ProjectScoped, Base):
    __tablename__ = "component_descs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    component_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("components.id"))
    code: Mapped[str] = mapped_column(String(10), nullable=False)
    c_code: Mapped[str] = mapped_column(String(10), nullable=False)
    short_code: Mapped[Optional[str]] = mapped_column(String(20))
    item_description: Mapped[str] = mapped_column(String(255), nullable=False)
    g_type: Mapped[Optional[str]] = mapped_column(String(50))
    s_type: Mapped[Optional[str]] = mapped_column(String(50))
    skey: Mapped[Optional[str]] = mapped_column(String(20))
    __table_args__ = (
        UniqueConstraint("project_id", "code", name="uq_component_desc_code"),
        default_unique("uq_component_desc_default_code", "code"),
    )


class Size(ProjectScoped, Base):
    __tablename__ = "sizes"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    size1_size2: Mapped[Decimal] = mapped_column(Numeric(8, 3), nullable=False)  # nominal inches
    code: Mapped[str] = mapped_column(String(10), nullable=False)
    c_code: Mapped[str] = mapped_column(String(10), nullable=False)
    size_inch: Mapped[str] = mapped_column(String(10), nullable=False)
    size_mm: Mapped[int] = mapped_column(Integer, nullable=False)
    od: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    __table_args__ = (
        UniqueConstraint("project_id", "code", name="uq_size_code"),
        default_unique("uq_size_default_code", "code"),
    )


class Schedule(ProjectScoped, Base):
    __tablename__ = "schedules"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sch1_sch2: Mapped[str] = mapped_column(String(10), nullable=False)
    code: Mapped[str] = mapped_column(String(10), nullable=False)
    c_code: Mapped[str] = mapped_column(String(10), nullable=False)
    sch_desc: Mapped[Optional[str]] = mapped_column(String(255))
    __table_args__ = (
        UniqueConstraint("project_id", "code", name="uq_schedule_code"),
        default_unique("uq_schedule_default_code", "code"),
    )


class Rating(ProjectScoped, Base):
    __tablename__ = "ratings"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rating_code: Mapped[str] = mapped_column(String(10), nullable=False)
    c_rating_code: Mapped[str] = mapped_column(String(10), nullable=False)
    rating_value: Mapped[str] = mapped_column(String(10), nullable=False)
    __table_args__ = (
        UniqueConstraint("project_id", "rating_code", name="uq_rating_code"),
        default_unique("uq_rating_default_code", "rating_code"),
    )


class Material(ProjectScoped, Base):
    __tablename__ = "materials"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(10), nullable=False)
    c_code: Mapped[str] = mapped_column(String(10), nullable=False)
    material_description: Mapped[str] = mapped_column(String(255), nullable=False)
    base_material: Mapped[Optional[str]] = mapped_column(String(100))
    __table_args__ = (
        UniqueConstraint("project_id", "code", name="uq_material_code"),
        default_unique("uq_material_default_code", "code"),
    )


class DimensionalStandard(ProjectScoped, Base):
    __tablename__ = "dimensional_standards"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(20), nullable=False)
    c_code: Mapped[Optional[str]] = mapped_column(String(20))
    dim_std: Mapped[str] = mapped_column(String(255), nullable=False)
    g_type: Mapped[Optional[str]] = mapped_column(String(50))
    __table_args__ = (
        UniqueConstraint("project_id", "code", name="uq_dim_std_code"),
        default_unique("uq_dim_std_default_code", "code"),
    )


class CatalogReference(ProjectScoped, Base):
    __tablename__ = "catalog_references"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    component_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("components.id"))
    item_short_desc: Mapped[str] = mapped_column(String(255), nullable=False)
    rating: Mapped[Optional[str]] = mapped_column(String(10))
    catalog: Mapped[Optional[str]] = mapped_column(String(100))
    __table_args__ = (
        UniqueConstraint("project_id", "item_short_desc", "rating", name="uq_catalog_reference"),
        default_unique("uq_catalog_reference_default", "item_short_desc", text("(coalesce(rating, ''))")),
    )


class ConstructionDesc(ProjectScoped, Base):
    __tablename__ = "construction_descs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(10), nullable=False)
    c_code: Mapped[str] = mapped_column(String(10), nullable=False)
    construction_desc: Mapped[str] = mapped_column(String(255), nullable=False)
    __table_args__ = (
        UniqueConstraint("project_id", "code", name="uq_construction_desc_code"),
        default_unique("uq_construction_desc_default_code", "code"),
    )


class ValveSubType(ProjectScoped, Base):
    __tablename__ = "valve_sub_types"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(10), nullable=False)
    c_code: Mapped[str] = mapped_column(String(10), nullable=False)
    valv_sub_type: Mapped[str] = mapped_column(String(255), nullable=False)
    __table_args__ = (
        UniqueConstraint("project_id", "code", name="uq_valve_sub_type_code"),
        default_unique("uq_valve_sub_type_default_code", "code"),
    )


class ReducerEntry(ProjectScoped, Base):
    __tablename__ = "reducer_entries"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # REDUCER | REDUCER SWAGE
    big_size: Mapped[Decimal] = mapped_column(Numeric(8, 3), nullable=False)
    small_size: Mapped[Decimal] = mapped_column(Numeric(8, 3), nullable=False)
    __table_args__ = (
        UniqueConstraint("project_id", "type", "big_size", "small_size", name="uq_reducer_entry"),
        default_unique("uq_reducer_entry_default", "type", "big_size", "small_size"),
    )


# ── PER-SPEC TABLES ───────────────────────────────────────────────────────────
class BranchEntry(Base):
    __tablename__ = "branch_entries"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # NULL spec_id rows are the global default branch chart
    spec_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("specs.id", ondelete="CASCADE"), index=True
    )
    run_size: Mapped[float] = mapped_column(Float, nullable=False)      # mm
    branch_size: Mapped[float] = mapped_column(Float, nullable=False)   # mm
    comp_name: Mapped[str] = mapped_column(String(10), nullable=False)  # T | W | H | O | S | L
    __table_args__ = (
        UniqueConstraint("spec_id", "run_size", "branch_size", name="uq_branch_entry"),
        default_unique("uq_branch_entry_default", "run_size", "branch_size", scope="spec_id"),
    )


class SizeRange(Base):
    __tablename__ = "size_ranges"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    spec_id: Mapped[int] = mapped_column(Integer, ForeignKey("specs.id", ondelete="CASCADE"), index=True)
    size_code: Mapped[str] = mapped_column(String(10), nullable=False)
    schedule_code: Mapped[Optional[str]] = mapped_column(String(10))
    __table_args__ = (UniqueConstraint("spec_id", "size_code", name="uq_size_range_size"),)


class PMSLine(Base):
    __tablename__ = "pms_lines"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    spec_id: Mapped[int] = mapped_column(Integer, ForeignKey("specs.id", ondelete="CASCADE"), index=True)
    component_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("components.id"))
    component_desc_code: Mapped[Optional[str]] = mapped_column(String(10))
    size1_code: Mapped[Optional[str]] = mapped_column(String(10))
    size2_code: Mapped[Optional[str]] = mapped_column(String(10))
    rating_code: Mapped[Optional[str]] = mapped_column(String(10))
    material_code: Mapped[Optional[str]] = mapped_column(String(10))
    dimensional_standard_code: Mapped[Optional[str]] = mapped_column(String(20))
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ValvePMSLine(Base):
    __tablename__ = "valve_pms_lines"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    spec_id: Mapped[int] = mapped_column(Integer, ForeignKey("specs.id", ondelete="CASCADE"), index=True)
    component_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("components.id"))
    component_desc_code: Mapped[Optional[str]] = mapped_column(String(10))
    size1_code: Mapped[Optional[str]] = mapped_column(String(10))
    size2_code: Mapped[Optional[str]] = mapped_column(String(10))
    rating_code: Mapped[Optional[str]] = mapped_column(String(10))
    material_code: Mapped[Optional[str]] = mapped_column(String(10))
    dimensional_standard_code: Mapped[Optional[str]] = mapped_column(String(20))
    construction_desc_code: Mapped[Optional[str]] = mapped_column(String(10))
    valv_sub_type_code: Mapped[Optional[str]] = mapped_column(String(10))
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


# ── REVIEW OUTPUT / WEIGHT CACHE ──────────────────────────────────────────────
class ReviewOutput(Base):
    __tablename__ = "review_output"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id", ondelete="CASCADE"))
    spec: Mapped[Optional[str]] = mapped_column(String(50))
    comp_type: Mapped[Optional[str]] = mapped_column(String(50))
    short_code: Mapped[Optional[str]] = mapped_column(String(20))
    item_code: Mapped[str] = mapped_column(String(100), nullable=False)
    client_item_code: Mapped[Optional[str]] = mapped_column(String(100))
    item_long_desc: Mapped[Optional[str]] = mapped_column(Text)
    item_short_desc: Mapped[Optional[str]] = mapped_column(String(255))
    size1_inch: Mapped[Optional[str]] = mapped_column(String(20))
    size1_mm: Mapped[Optional[str]] = mapped_column(String(20))
    size2_inch: Mapped[Optional[str]] = mapped_column(String(20))
    size2_mm: Mapped[Optional[str]] = mapped_column(String(20))
    sch_1: Mapped[Optional[str]] = mapped_column(String(10))
    sch_2: Mapped[Optional[str]] = mapped_column(String(10))
    rating: Mapped[Optional[str]] = mapped_column(String(10))
    # Decimal string, user-entered; NULL until someone sets it
    unit_weight: Mapped[Optional[str]] = mapped_column(String(20))
    g_type: Mapped[Optional[str]] = mapped_column(String(50))
    s_type: Mapped[Optional[str]] = mapped_column(String(50))
    skey: Mapped[Optional[str]] = mapped_column(String(20))
    catref: Mapped[Optional[str]] = mapped_column(String(150))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    __table_args__ = (
        UniqueConstraint("item_code", name="uq_review_output_item_code"),
        Index("ix_review_output_filter", "comp_type", "size1_inch", "size2_inch", "rating"),
    )

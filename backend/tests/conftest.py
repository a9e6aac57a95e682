"""
conftest.py — Shared pytest fixtures for the PMS generator backend test suite.

Two kinds of fixtures live here:

  * In-memory domain values (size catalog, schedules, ratings, materials,
    component descriptions) plus ``make_context``, a factory that builds an
    ExpansionContext around them. Engine tests use these and never touch a
    database.
  * ``seeded_db``: a SQLite file database (aiosqlite) with one project, two
    specs and a small set of overlaid domain rows. Service and route tests
    run against it.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``app.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import asyncio
from decimal import Decimal
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any app imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Reference data, shared by the in-memory fixtures and the seeded database.
#   (code, c_code, nominal inch, inch text, mm, OD)
# ---------------------------------------------------------------------------
SIZE_ROWS = [
    ("015", "C015", 0.5, '1/2"', 15, 21.3),
    ("020", "C020", 0.75, '3/4"', 20, 26.7),
    ("025", "C025", 1, '1"', 25, 33.4),
    ("040", "C040", 1.5, '1-1/2"', 40, 48.3),
    ("050", "C050", 2, '2"', 50, 60.3),
    ("080", "C080", 3, '3"', 80, 88.9),
    ("100", "C100", 4, '4"', 100, 114.3),
    ("150", "C150", 6, '6"', 150, 168.3),
]

COMPONENTS = {1: "PIPE", 2: "FLANGE", 3: "TEE", 4: "REDUCER", 5: "COUPLING", 6: "OLET", 7: "VALV"}

# (code, c_code, description, component id)
COMPONENT_DESC_ROWS = [
    ("PIP", "CPIP", "PIPE SMLS BE", 1),
    ("FLG", "CFLG", "FLANGE WN RF", 2),
    ("FRD", "CFRD", "FLANGE REDUCING RF", 2),
    ("TEE", "CTEE", "TEE EQUAL", 3),
    ("RED", "CRED", "REDUCER CONC", 4),
    ("SWG", "CSWG", "SWAGE CONC", 4),
    ("CPL", "CCPL", "COUPLING REDUCING", 5),
    ("WOL", "CWOL", "WELDOLET", 6),
    ("GTV", "CGTV", "GATE VALVE", 7),
]


# ---------------------------------------------------------------------------
# In-memory domain values
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def size_values():
    """Size catalog 15-150 mm, one SizeValue per row of SIZE_ROWS."""
    from app.services.domain_values import SizeValue
    return [SizeValue(code, c, float(nom), inch, float(mm), od) for code, c, nom, inch, mm, od in SIZE_ROWS]


@pytest.fixture(scope="session")
def size_index(size_values):
    from app.services.size_range_resolver import SizeIndex
    return SizeIndex(size_values)


@pytest.fixture(scope="session")
def sizes_by_mm(size_values):
    return {int(s.size_mm): s for s in size_values}


@pytest.fixture(scope="session")
def schedules():
    """STD (S4) and XS (S8)."""
    from app.services.domain_values import ScheduleValue
    return {
        "S4": ScheduleValue("S4", "CS4", "STD"),
        "S8": ScheduleValue("S8", "CS8", "XS"),
    }


@pytest.fixture(scope="session")
def ratings():
    from app.services.domain_values import RatingValue
    return {"R1": RatingValue("R1", "CR1", "150#")}


@pytest.fixture(scope="session")
def materials():
    from app.services.domain_values import MaterialValue
    return {"M1": MaterialValue("M1", "CM1", "ASTM A105")}


@pytest.fixture(scope="session")
def dim_stds():
    from app.services.domain_values import DimStdValue
    return {"D1": DimStdValue("D1", "CD1", "ASME B16.5")}


@pytest.fixture(scope="session")
def component_descs():
    from app.services.domain_values import ComponentDescValue
    return {
        code: ComponentDescValue(code, c_code, desc, short_code=code[:2], g_type="G" + code, s_type="S" + code)
        for code, c_code, desc, _ in COMPONENT_DESC_ROWS
    }


def _line(line_id, component_id, desc_code, size1, size2, **kwargs):
    from app.services.domain_values import PMSLineValue
    return PMSLineValue(
        id=line_id,
        sort_order=kwargs.pop("sort_order", line_id),
        component_id=component_id,
        component_desc_code=desc_code,
        size1_code=size1,
        size2_code=size2,
        **kwargs,
    )


@pytest.fixture
def pms_line():
    """
    Factory for PMSLineValue rows.

    Usage::

        pms_line(1, 2, "FLG", "050", "150", rating_code="R1", material_code="M1")
    """
    return _line


@pytest.fixture
def make_context(size_index, schedules, ratings, materials, dim_stds, component_descs):
    """
    Factory building an ExpansionContext around the in-memory fixtures.

    Every SizeRange size defaults to schedule S4 (STD); pass ``size_range``
    to override, ``enabled_mm`` to enable a subset of the catalog.
    """
    from app.services.expansion_pipeline import ExpansionContext

    def _make(
        pms_lines=(),
        valve_lines=(),
        enabled_mm=None,
        size_range=None,
        branches=(),
        reducers=(),
        catalog_refs=None,
        weights=None,
        construction_descs=None,
        valve_sub_types=None,
    ):
        if size_range is None:
            size_range = {
                s.code: "S4" for s in size_index.ordered
                if enabled_mm is None or int(s.size_mm) in enabled_mm
            }
        return ExpansionContext(
            spec_id=1,
            spec_name="A1A",
            project_id=1,
            pms_lines=list(pms_lines),
            valve_lines=list(valve_lines),
            components=dict(COMPONENTS),
            component_descs=component_descs,
            sizes=size_index,
            schedules=schedules,
            ratings=ratings,
            materials=materials,
            dim_stds=dim_stds,
            catalog_refs=catalog_refs or {},
            size_range=size_range,
            branches=tuple(branches),
            reducers=tuple(reducers),
            construction_descs=construction_descs or {},
            valve_sub_types=valve_sub_types or {},
            weights=weights or {},
        )

    return _make


# ---------------------------------------------------------------------------
# SQLite database
# ---------------------------------------------------------------------------

def make_engine(db_path):
    """aiosqlite engine without pooling, so every event loop opens fresh connections."""
    from sqlalchemy.ext.asyncio import create_async_engine
    from sqlalchemy.pool import NullPool
    return create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)


def make_session_factory(engine):
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def _seed(engine):
    from app.db import Base
    from app.models import orm_models as m

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = make_session_factory(engine)
    async with factory() as session:
        session.add_all([
            m.Project(id=1, name="Alpha Refinery"),
            m.Project(id=2, name="Empty Project"),
        ])
        await session.flush()
        session.add_all([
            m.Spec(id=1, project_id=1, spec_name="A1A", rating="150#"),
            m.Spec(id=2, project_id=1, spec_name="B2B"),
        ])
        session.add_all([m.Component(id=cid, name=name) for cid, name in COMPONENTS.items()])
        await session.flush()

        session.add_all([
            m.Size(
                code=code, c_code=c, size1_size2=Decimal(str(nom)), size_inch=inch,
                size_mm=mm, od=Decimal(str(od)),
            )
            for code, c, nom, inch, mm, od in SIZE_ROWS
        ])
        session.add_all([
            m.Schedule(code="S4", c_code="CS4", sch1_sch2="STD"),
            m.Schedule(code="S8", c_code="CS8", sch1_sch2="XS"),
            m.Rating(rating_code="R1", c_rating_code="CR1", rating_value="150#"),
            m.Material(code="M1", c_code="CM1", material_description="ASTM A105"),
            # Project 1 overrides the default material description
            m.Material(project_id=1, code="M1", c_code="PM1", material_description="ASTM A105N"),
            m.DimensionalStandard(code="D1", c_code="CD1", dim_std="ASME B16.5"),
            m.CatalogReference(item_short_desc="FLANGE WN RF", rating="150#", catalog="FLWN"),
            m.ConstructionDesc(code="C1", c_code="CC1", construction_desc="BOLTED BONNET"),
            m.ValveSubType(code="V1", c_code="CV1", valv_sub_type="WEDGE GATE"),
            m.BranchEntry(spec_id=None, run_size=80, branch_size=50, comp_name="T"),
        ])
        session.add_all([
            m.ComponentDesc(code=code, c_code=c, item_description=desc, component_id=cid)
            for code, c, desc, cid in COMPONENT_DESC_ROWS
        ])
        session.add_all([
            m.SizeRange(spec_id=1, size_code=code, schedule_code="S4")
            for code in ("050", "080", "100", "150")
        ])
        session.add_all([
            m.PMSLine(
                spec_id=1, component_id=2, component_desc_code="FLG", size1_code="050",
                size2_code="150", rating_code="R1", material_code="M1",
                dimensional_standard_code="D1", sort_order=1,
            ),
            m.PMSLine(
                spec_id=1, component_id=3, component_desc_code="TEE", size1_code="050",
                size2_code="100", rating_code="R1", material_code="M1", sort_order=2,
            ),
            # No material: skipped with a diagnostic
            m.PMSLine(
                spec_id=1, component_id=1, component_desc_code="PIP", size1_code="050",
                size2_code="150", sort_order=3,
            ),
            m.ValvePMSLine(
                spec_id=1, component_id=7, component_desc_code="GTV", size1_code="050",
                size2_code="080", rating_code="R1", material_code="M1",
                construction_desc_code="C1", valv_sub_type_code="V1", sort_order=1,
            ),
        ])
        await session.commit()


@pytest.fixture
def seeded_db(tmp_path):
    """
    Engine + session factory over a freshly seeded SQLite file.

    Project 1 / spec 1 ("A1A") expands to 7 items:
      FLANGE 50-150 (4), TEE 80x50 (1), VALV 50-80 (2);
    its PIPE line has no material and is skipped.
    Spec 2 ("B2B") has no PMS lines. Project 2 has no specs.
    """
    engine = make_engine(tmp_path / "pms.db")
    asyncio.run(_seed(engine))
    yield engine, make_session_factory(engine)
    asyncio.run(engine.dispose())


@pytest.fixture(autouse=True)
def _reset_tracker():
    from app.services.perf_monitor import tracker
    tracker.reset()
    yield

"""
test_expansion_pipeline.py — End-to-end tests for expand() over in-memory contexts.

Tests cover:
  - FLANGE / RF over four enabled sizes: codes, schedules, catalog suffixes
  - plain components: N enabled sizes -> N items with size2/schedule2 placeholders
  - TEE 80x50 from the branch chart
  - required references missing -> line skipped with a diagnostic, rest expands
  - VALV routing between the PMS and valve streams
  - include_weight on/off
  - empty input -> non-fatal failure result
"""

import pytest

from app.services.catalog_weight_resolver import catalog_key
from app.services.domain_values import (
    BranchValue,
    CatalogRefValue,
    ConstructionDescValue,
    ValveSubTypeValue,
)
from app.services.expansion_pipeline import NO_DATA_MESSAGE, attach_weights, expand


@pytest.fixture
def flange_catalog():
    ref = CatalogRefValue("FLANGE WN RF", "150#", "FLWN")
    return {catalog_key(ref): ref}


class TestFlangeScenario:
    """One FLANGE RF line, 50-150 mm, SizeRange {50, 80, 100, 150} all STD."""

    @pytest.fixture
    def result(self, make_context, pms_line, flange_catalog):
        ctx = make_context(
            pms_lines=[pms_line(1, 2, "FLG", "050", "150", rating_code="R1", material_code="M1")],
            enabled_mm={50, 80, 100, 150},
            catalog_refs=flange_catalog,
        )
        return expand(ctx)

    def test_four_items(self, result):
        assert result.success is True
        assert len(result.data) == 4
        assert result.diagnostics == []

    def test_shared_description_code_and_increasing_sizes(self, result):
        assert all(item.item_code.startswith("FLG") for item in result.data)
        size_codes = [item.item_code[3:6] for item in result.data]
        assert size_codes == ["050", "080", "100", "150"]
        assert size_codes == sorted(size_codes)

    def test_schedule_is_std(self, result):
        assert all(item.sch1 == "STD" for item in result.data)
        assert all(item.sch2 == "XX" for item in result.data)

    def test_catalog_suffixes(self, result):
        assert [item.catref for item in result.data] == ["FLWN-50", "FLWN-80", "FLWN-100", "FLWN-150"]

    def test_item_fields(self, result):
        first = result.data[0]
        assert first.spec == "A1A"
        assert first.comp_type == "FLANGE"
        assert first.size1_inch == "2"
        assert first.size1_mm == "50"
        assert first.size2_inch == "X"
        assert first.size2_mm == "X"
        assert first.rating == "150#"
        assert first.g_type == "GFLG"
        assert first.unit_weight is None

    def test_counts_by_type(self, result):
        assert result.counts_by_type == {"FLANGE": 4}


class TestPlainComponents:

    def test_n_enabled_sizes_yield_n_items(self, make_context, pms_line):
        ctx = make_context(
            pms_lines=[pms_line(1, 1, "PIP", "015", "150", material_code="M1")],
            enabled_mm={15, 25, 50},
        )
        result = expand(ctx)
        assert [item.size1_mm for item in result.data] == ["15", "25", "50"]
        assert all(item.size2_inch == "X" and item.sch2 == "XX" for item in result.data)

    def test_absent_rating_never_empty_in_code(self, make_context, pms_line):
        ctx = make_context(pms_lines=[pms_line(1, 1, "PIP", "050", "050", material_code="M1")])
        (item,) = expand(ctx).data
        assert item.rating == "X"
        assert item.item_code == "PIP050XS4XXXM1"

    def test_unmatched_catalog_is_blank(self, make_context, pms_line):
        ctx = make_context(pms_lines=[pms_line(1, 1, "PIP", "050", "050", material_code="M1")])
        (item,) = expand(ctx).data
        assert item.catref == ""


class TestTee:

    def test_run_80_branch_50(self, make_context, pms_line):
        ctx = make_context(
            pms_lines=[pms_line(1, 3, "TEE", "050", "100", rating_code="R1", material_code="M1")],
            enabled_mm={50, 80, 100},
            branches=[BranchValue(80, 50, "T")],
        )
        (item,) = expand(ctx).data
        assert (item.size1_mm, item.size2_mm) == ("80", "50")
        assert item.item_code == "TEE080050S4S4R1M1"
        assert item.item_long_desc == "TEE EQUAL, STD, STD, 150#, ASTM A105"


class TestDiagnostics:

    def test_missing_material_skips_only_that_line(self, make_context, pms_line):
        ctx = make_context(pms_lines=[
            pms_line(1, 1, "PIP", "050", "080"),
            pms_line(2, 2, "FLG", "050", "080", material_code="M1"),
        ])
        result = expand(ctx)
        assert result.success is True
        assert {item.comp_type for item in result.data} == {"FLANGE"}
        (diag,) = result.diagnostics
        assert diag.pms_line_id == 1
        assert diag.stream == "pms"
        assert diag.missing == ("material",)

    def test_every_missing_reference_is_listed(self, make_context, pms_line):
        ctx = make_context(pms_lines=[pms_line(1, 999, "NOPE", "999", None)])
        (diag,) = expand(ctx).diagnostics
        assert diag.missing == ("component", "component_desc", "size1", "size2", "material")

    def test_unknown_rating_degrades(self, make_context, pms_line):
        ctx = make_context(pms_lines=[
            pms_line(1, 2, "FLG", "050", "050", rating_code="R9", material_code="M1"),
        ])
        result = expand(ctx)
        assert result.diagnostics == []
        assert result.data[0].rating == "X"


class TestValves:

    @pytest.fixture
    def valve_ctx_kwargs(self):
        return {
            "construction_descs": {"C1": ConstructionDescValue("C1", "CC1", "BOLTED BONNET")},
            "valve_sub_types": {"V1": ValveSubTypeValue("V1", "CV1", "WEDGE GATE")},
        }

    def test_valve_stream_items(self, make_context, pms_line, valve_ctx_kwargs):
        valve = pms_line(
            10, 7, "GTV", "050", "080", rating_code="R1", material_code="M1",
            construction_desc_code="C1", valv_sub_type_code="V1", is_valve_line=True,
        )
        ctx = make_context(valve_lines=[valve], **valve_ctx_kwargs)
        result = expand(ctx)
        assert [item.item_code for item in result.data] == ["GTV050XR1M1", "GTV080XR1M1"]
        first = result.data[0]
        assert first.sch1 == "XX"
        assert first.construction_desc == "BOLTED BONNET"
        assert first.valv_sub_type == "WEDGE GATE"

    def test_valve_in_pms_stream_is_skipped(self, make_context, pms_line):
        ctx = make_context(pms_lines=[pms_line(1, 7, "GTV", "050", "080", material_code="M1")])
        result = expand(ctx)
        assert result.data == []
        assert result.diagnostics[0].reason == "valve component in PMS stream"

    def test_pms_lines_come_before_valve_lines(self, make_context, pms_line):
        valve = pms_line(10, 7, "GTV", "050", "050", material_code="M1", is_valve_line=True)
        ctx = make_context(
            pms_lines=[pms_line(1, 2, "FLG", "050", "050", material_code="M1")],
            valve_lines=[valve],
        )
        assert [item.comp_type for item in expand(ctx).data] == ["FLANGE", "VALV"]


class TestWeights:

    def test_include_weight_attaches_cached_or_zero(self, make_context, pms_line):
        ctx = make_context(
            pms_lines=[pms_line(1, 2, "FLG", "050", "080", rating_code="R1", material_code="M1")],
            enabled_mm={50, 80},
            weights={"FLG050XS4XXR1M1": "12.50"},
        )
        result = expand(ctx, include_weight=True)
        assert [item.unit_weight for item in result.data] == ["12.50", "0.00"]

    def test_weight_omitted_by_default(self, make_context, pms_line):
        ctx = make_context(
            pms_lines=[pms_line(1, 2, "FLG", "050", "050", material_code="M1")],
            weights={"FLG050XS4XXXM1": "12.50"},
        )
        assert expand(ctx).data[0].unit_weight is None

    def test_attach_weights_after_expansion(self, make_context, pms_line):
        ctx = make_context(
            pms_lines=[pms_line(1, 2, "FLG", "050", "080", rating_code="R1", material_code="M1")],
            enabled_mm={50, 80},
        )
        result = attach_weights(expand(ctx), {"FLG080XS4XXR1M1": "3.10"})
        assert [item.unit_weight for item in result.data] == ["0.00", "3.10"]


class TestEmptyInput:

    def test_no_lines_is_reported_not_raised(self, make_context):
        result = expand(make_context())
        assert result.success is False
        assert result.error == NO_DATA_MESSAGE
        assert result.data == []

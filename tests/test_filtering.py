"""Provider filtering and capability matching tests."""

from __future__ import annotations

from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from computerouter.ledger.models import GpuSpec, HardwareSpecs, JobRequirements, Provider
from computerouter.scheduler.capabilities import check_capability, normalize_tag, tag_matches
from computerouter.scheduler.filtering import (
    MALFORMED,
    check_provider,
    evaluate_providers,
    filter_hints,
    filter_providers,
    rejection_summary,
)


def _provider(provider_id: str, **overrides) -> Provider:
    fields = dict(
        id=provider_id,
        name=provider_id.upper(),
        region="us-east",
        gpu_types=("NVIDIA A100", "NVIDIA V100"),
        price_per_hour=2.5,
        availability=0.95,
        uptime=99.9,
        latency_ms=45,
        specs=HardwareSpecs(vcpus=32, memory_gb=128, storage_gb=1000),
    )
    fields.update(overrides)
    return Provider(**fields)


# ============================================================================
# Capabilities
# ============================================================================


def test_normalize_tag_case_folds_and_collapses_whitespace() -> None:
    assert normalize_tag("  NVIDIA   A100 ") == "nvidia a100"


def test_gpu_matching_is_case_insensitive_substring() -> None:
    assert tag_matches("nvidia", "NVIDIA A100")
    assert tag_matches("a100", "NVIDIA A100")
    assert not tag_matches("rtx4090", "NVIDIA A100")
    assert not tag_matches("", "NVIDIA A100")


def test_check_capability_any_offered_tag() -> None:
    assert check_capability(["NVIDIA RTX 4090", "NVIDIA RTX 3090"], "rtx 3090")
    assert not check_capability([], "nvidia")


# ============================================================================
# Filtering
# ============================================================================


def test_no_constraints_keeps_everything() -> None:
    providers = [_provider("a"), _provider("b", region="eu-west")]
    assert filter_providers(JobRequirements(), providers) == providers


def test_region_match_is_case_insensitive() -> None:
    req = JobRequirements(region="US-East")
    kept = filter_providers(req, [_provider("a"), _provider("b", region="eu-west")])
    assert [p.id for p in kept] == ["a"]


def test_price_ceiling_and_gpu_scenario() -> None:
    req = JobRequirements(gpu=GpuSpec(model="nvidia", units=2), max_price_per_hour=3.0)
    cheap = _provider("p1", gpu_types=("NVIDIA A100", "NVIDIA V100"), price_per_hour=2.5)
    pricey = _provider("p2", gpu_types=("NVIDIA H100",), price_per_hour=4.0)

    results = evaluate_providers(req, [cheap, pricey])
    assert [r.provider.id for r in results if r.passed] == ["p1"]
    assert results[1].failed_constraints == ["price"]


def test_gpu_mismatch_is_rejected_with_reason() -> None:
    req = JobRequirements(gpu=GpuSpec(model="rtx4090"))
    result = check_provider(req, _provider("a"))
    assert not result.passed
    assert result.failed_constraints == ["gpu"]
    assert "rtx4090" in result.rejection_reason


def test_availability_floor() -> None:
    req = JobRequirements(min_availability=0.9)
    kept = filter_providers(req, [_provider("a", availability=0.85), _provider("b")])
    assert [p.id for p in kept] == ["b"]


def test_capacity_checks_declared_resources() -> None:
    req = JobRequirements(cpu=40, memory_gb=64)
    result = check_provider(req, _provider("a"))
    assert result.failed_constraints == ["capacity"]
    assert "vcpus" in result.rejection_reason


def test_undeclared_gpu_units_do_not_eliminate() -> None:
    req = JobRequirements(gpu=GpuSpec(model="a100", units=8))
    undeclared = _provider("a")
    declared = _provider("b", specs=HardwareSpecs(vcpus=32, memory_gb=128, storage_gb=1000, gpu_units=2))
    assert [p.id for p in filter_providers(req, [undeclared, declared])] == ["a"]


def test_malformed_provider_is_skipped_not_raised() -> None:
    bad = _provider("bad", uptime=140)
    results = evaluate_providers(JobRequirements(), [bad, _provider("good")])
    assert results[0].passed is False
    assert results[0].failed_constraints == [MALFORMED]
    assert results[1].passed is True


def test_multiple_failures_are_all_recorded() -> None:
    req = JobRequirements(region="eu-west", max_price_per_hour=1.0)
    result = check_provider(req, _provider("a"))
    assert result.failed_constraints == ["region", "price"]
    assert len(result.reasons) == 2


def test_rejection_summary_counts_per_constraint() -> None:
    req = JobRequirements(region="eu-west", max_price_per_hour=2.0)
    results = evaluate_providers(
        req,
        [
            _provider("a"),
            _provider("b", region="eu-west"),
            _provider("c", region="eu-west", price_per_hour=1.5),
        ],
    )
    assert rejection_summary(results) == {"region": 1, "price": 2}


def test_filter_hints_only_include_set_constraints() -> None:
    assert filter_hints(JobRequirements()) == {}
    hints = filter_hints(JobRequirements(region="us-east", gpu=GpuSpec(model="a100", units=2)))
    assert hints == {"region": "us-east", "gpu_model": "a100", "gpu_units": 2}

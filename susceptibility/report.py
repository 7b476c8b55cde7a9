"""Text reports and consistency checks for susceptibility summaries."""

from datetime import date
from typing import Dict, List, Optional

import pandas as pd

from susceptibility.classification import RiskClass
from susceptibility.config import ModelConfiguration
from susceptibility.zonal import EmptyZonalReduction, ZonalSummary


def parameter_table(config: ModelConfiguration) -> pd.DataFrame:
    """Model weights and anchors as a table, weights in percent."""
    anchors = config.anchors.as_dict()
    sources = {
        "slope": "slope",
        "deformation": "deformation",
        "curvature": "curvature",
        "moisture": "moisture",
        "position": "relief_adjusted",
    }
    rows = []
    for name, weight in config.weights.as_dict().items():
        lower, upper = anchors[sources[name]]
        rows.append(
            {
                "criterion": name,
                "weight_percent": weight * 100.0,
                "anchor_lower": lower,
                "anchor_upper": upper,
            }
        )
    return pd.DataFrame(rows)


def validate_summary(summary: ZonalSummary, tolerance: float = 1e-6) -> Dict:
    """Check partition completeness and percentage bounds of a summary.

    Returns:
        dict: ``valid`` flag and the list of ``issues`` found
    """
    validation = {"valid": True, "issues": []}

    class_total = sum(summary.class_area_ha.values())
    if abs(class_total - summary.valid_area_ha) > tolerance * max(1.0, summary.valid_area_ha):
        validation["valid"] = False
        validation["issues"].append(
            f"Class areas sum to {class_total:.4f} ha, valid area is {summary.valid_area_ha:.4f} ha"
        )

    for name in ("high_risk_percent", "steep_slope_percent"):
        value = getattr(summary, name)
        if not 0.0 <= value <= 100.0 + tolerance:
            validation["valid"] = False
            validation["issues"].append(f"{name} out of range: {value}")

    missing = [c.key for c in RiskClass if c not in summary.class_area_ha]
    if missing:
        validation["valid"] = False
        validation["issues"].append(f"Missing class areas: {', '.join(missing)}")

    return validation


def _fmt(value, digits: int = 2, unit: str = "") -> str:
    if isinstance(value, EmptyZonalReduction) or value is None:
        return "n/a"
    return f"{value:.{digits}f}{unit}"


def summary_report(
    summary: ZonalSummary,
    config: ModelConfiguration,
    region_name: str = "study region",
    report_date: Optional[date] = None,
    output_path: Optional[str] = None,
) -> str:
    """Formatted text report of a model run.

    Args:
        summary: Zonal summary of the run
        config: Configuration the run used
        region_name: Name printed in the header
        report_date: Date printed in the header, defaults to today
        output_path: Path to save the report (optional)

    Returns:
        str: The report text
    """
    validation = validate_summary(summary)
    report_date = report_date or date.today()

    lines: List[str] = [
        "=" * 70,
        "SLOPE STABILITY SUSCEPTIBILITY REPORT",
        "=" * 70,
        "",
        f"Region: {region_name}",
        f"Date: {report_date.isoformat()}",
        f"Model version: {summary.model_version}",
        f"Total area: {summary.total_area_ha:.2f} ha",
        "",
        "ELEVATION",
        "-" * 70,
        f"Minimum: {_fmt(summary.elevation_min, 1, ' m')}",
        f"Maximum: {_fmt(summary.elevation_max, 1, ' m')}",
        f"Mean: {_fmt(summary.elevation_mean, 1, ' m')}",
        f"Std dev: {_fmt(summary.elevation_std, 1, ' m')}",
        "",
        "SLOPE",
        "-" * 70,
        f"Mean: {_fmt(summary.slope_mean, 2, ' deg')}",
    ]
    for key, value in summary.slope_percentiles.items():
        lines.append(f"{key.upper()}: {_fmt(value, 2, ' deg')}")
    lines.extend(
        [
            f"Area with slope > {summary.steep_slope_threshold_deg:g} deg: "
            f"{summary.steep_slope_area_ha:.2f} ha ({summary.steep_slope_percent:.1f} %)",
            "",
            "AREA BY RISK CLASS (hectares)",
            "-" * 70,
        ]
    )
    for risk_class in RiskClass:
        area = summary.class_area_ha.get(risk_class, 0.0)
        lines.append(f"  {risk_class.label:<10} {area:>12.2f} ha")
    lines.extend(
        [
            "",
            "CRITICAL INDICATORS",
            "-" * 70,
            f"High and very high risk area: {summary.high_risk_area_ha:.2f} ha",
            f"Critical area percentage: {summary.high_risk_percent:.1f} %",
            "",
            "MODEL PARAMETERS",
            "-" * 70,
        ]
    )
    for name, weight in config.weights.as_dict().items():
        lines.append(f"  Weight {name}: {weight * 100:g}%")
    lines.extend(["", "ENGINEERING GUIDANCE", "-" * 70])
    for risk_class in RiskClass:
        lines.append(f"  {risk_class.label}: {risk_class.guidance}")
    lines.extend(
        [
            "",
            "CONSISTENCY",
            "-" * 70,
            f"Status: {'PASS' if validation['valid'] else 'FAIL'}",
        ]
    )
    lines.extend(f"  - {issue}" for issue in validation["issues"])
    lines.extend(["", "=" * 70])

    report = "\n".join(lines)
    if output_path:
        with open(output_path, "w") as f:
            f.write(report)
    return report

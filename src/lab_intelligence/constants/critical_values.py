# ============================================================================
# src/lab_intelligence/constants/critical_values.py
# ============================================================================
"""
Critical Value Thresholds
- Values that require immediate clinical attention
- Keys match the canonical keys in knowledge/reference_ranges.json
"""

CRITICAL_VALUES = {
    "glucose": {"low": 40, "high": 400},
    "sodium": {"low": 120, "high": 160},
    "potassium": {"low": 2.5, "high": 6.5},
    "chloride": {"low": 80, "high": 120},
    "co2": {"low": 15, "high": 40},
    "bun": {"low": 2, "high": 80},
    "creatinine": {"low": 0.3, "high": 10.0},
    "hemoglobin": {"low": 7.0, "high": 20.0},
    "hematocrit": {"low": 20, "high": 60},
    "wbc": {"low": 1.0, "high": 30.0},
    "platelets": {"low": 20, "high": 1000},
    "calcium": {"low": 6.0, "high": 13.0},
    "magnesium": {"low": 1.0, "high": 4.7},
    "phosphorus": {"low": 1.0},
    "bilirubin": {"high": 15.0},
}

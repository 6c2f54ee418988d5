# ============================================================================
# src/lab_intelligence/constants/lab_keywords.py
# ============================================================================
"""
Lab Test Vocabulary
- Keywords that make a candidate line acceptable as a lab result
- Non-diagnostic name prefixes stripped during name normalization
"""

LAB_TEST_KEYWORDS = (
    # Metabolic panel
    "glucose", "sodium", "potassium", "chloride", "co2", "bicarbonate",
    "bun", "urea", "creatinine", "gfr", "egfr", "calcium", "phosphorus", "magnesium",
    "albumin", "protein", "bilirubin", "alt", "ast", "alkaline phosphatase",
    "alp",
    # Lipids
    "cholesterol", "hdl", "ldl", "vldl", "triglycerides",
    # Hematology
    "hemoglobin", "hgb", "hematocrit", "hct", "wbc", "rbc", "platelet",
    "mcv", "mch", "mchc", "rdw", "neutrophils", "lymphocytes", "monocytes",
    "eosinophils", "basophils",
    # Endocrine and vitamins
    "tsh", "t3", "t4", "a1c", "hba1c", "insulin", "vitamin", "ferritin", "iron",
    "b12", "folate",
    # Inflammation and cardiac
    "crp", "esr", "troponin", "bnp",
    # Coagulation and screening
    "pt", "ptt", "inr", "psa",
)

# Removed from the front of a test name; "Serum Glucose" -> "Glucose"
NAME_PREFIXES = ("total", "serum", "plasma", "blood", "whole")

# Keywords at or under this length must match a whole token, not a substring
SHORT_KEYWORD_LENGTH = 3

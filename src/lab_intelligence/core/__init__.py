# ============================================================================
# src/lab_intelligence/core/__init__.py
# ============================================================================
"""
Core components: data model, runtime configuration, the text-source
contract and the end-to-end pipeline (lab_intelligence.core.lab_pipeline).
"""

"""
Survival cohort pipeline: normalized records, survival observations,
matched cohorts and model-ready rows.
"""

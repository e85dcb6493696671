"""
L5 Orchestration — the recipe runner and the recipe-set orchestrator.
"""

"""
Services consumed by the orchestrator.
"""

"""Infrastructure layer for TransFAIR.

Settings, run configuration and logging setup. Nothing in the domain layer
imports from here.
"""

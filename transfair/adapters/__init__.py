"""Adapters layer for TransFAIR.

This module contains the input/output adapters that interface with external
systems: record readers, bundle writers, translation table loading and
identifier mapping. Adapters implement the Port interfaces defined in the
domain layer.
"""

"""Test suite for the physarum simulator.

This package contains:
- Unit tests for configuration, agents and each kernel
- Orchestrator tests for buffer alternation, deposit isolation and frame handling
- Capture tests for PNG output
"""

"""Rover mission backend: DSL compiler, grid simulation and replay."""

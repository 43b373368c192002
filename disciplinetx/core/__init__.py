"""
Core module for DisciplineTX.

Configuration, persisted schemas, storage and the engine facade.
"""

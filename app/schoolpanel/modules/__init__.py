"""
Entity modules live under this package.

Each module owns its model, field set and resource wiring, while reusing the
platform primitives (guard, store, resource controller, assignments, audit).
"""

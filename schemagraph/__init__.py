"""
schemagraph - Graph-backed JSON Schema form builder engine.

This package models a form schema as a typed graph and compiles it to
and from JSON Schema documents:
- Nodes are fields, containers, conditional groups, definitions and
  references; edges are containment or conditional branches
- Every edit is a pure operation that returns a new graph value
- The compiler emits a JSON Schema document plus a UI schema, and the
  decompiler seeds a graph from an existing document

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌──────────────┐
    │  CLI / HTTP │────▶│ GraphStore  │────▶│  Operations  │
    └─────────────┘     └──────┬──────┘     │ + Validator  │
                               │            └──────────────┘
                               ▼
                        ┌─────────────┐     ┌──────────────┐
                        │  Compiler   │────▶│ Widget       │
                        │ (both ways) │     │ Registry     │
                        └─────────────┘     └──────────────┘

Invariants:
    - Graph values are immutable; every edit returns a new version
    - decompile(compile(graph)) preserves the graph signature
    - Node ids are opaque and never appear in compiled documents

How to change safely:
    - New node attributes need a document keyword, a decoding rule and
      a round-trip test
    - Keep error codes stable; the HTTP layer maps them to status codes
"""

from ._version import __version__

__all__ = ["__version__"]

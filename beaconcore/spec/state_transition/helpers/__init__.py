"""Phase 0 helper functions (accessors, predicates, mutators, committees)."""

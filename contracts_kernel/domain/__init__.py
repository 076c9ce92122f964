"""Pure domain types for the contracts kernel. ZERO I/O."""

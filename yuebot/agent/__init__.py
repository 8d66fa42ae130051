"""Agent core: gating, budgeting, memory and generation."""

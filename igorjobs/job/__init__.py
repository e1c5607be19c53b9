"""A single Igor invocation: lifecycle, output buffer and diagnostics."""

"""Pure domain helpers for the ERP kernel: rounding, clock, and DTOs."""

"""Backend control, database access, reporting and bug reproduction helpers."""

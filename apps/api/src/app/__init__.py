"""SchoolConnect API application package."""

"""Live terminal dashboard for Slurm jobs."""

__version__ = "0.1.0"

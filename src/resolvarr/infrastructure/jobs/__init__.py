from .job_manager import ResolutionJobManager

__all__ = ["ResolutionJobManager"]

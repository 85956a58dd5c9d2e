from .parts import lin_parts, expand_call
from .process_job import process_jobs, process_jobs_

__all__ = ["lin_parts", "expand_call", "process_jobs", "process_jobs_"]

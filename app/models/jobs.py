# file: models/jobs.py

from pydantic import BaseModel
from typing import List, Optional


class JobReport(BaseModel):
    job: str
    lease_acquired: bool = True
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    commits: List[int] = []


class JobRunResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    report: Optional[JobReport] = None

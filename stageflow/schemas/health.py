"""Health report schemas."""

from typing import Optional

from pydantic import BaseModel


class DatabaseHealth(BaseModel):
    reachable: bool
    error: Optional[str] = None


class MigrationHealth(BaseModel):
    """Applied revision against the newest revision shipped with the code."""

    current: Optional[str] = None
    head: Optional[str] = None
    up_to_date: bool = False


class HealthReport(BaseModel):
    status: str
    database: DatabaseHealth
    migrations: MigrationHealth

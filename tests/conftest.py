"""
Shared test fixtures and models for the cfgtree test suite.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated

import pytest
from pydantic import BaseModel

from cfgtree import Int8, Tags, Uint64


class Database(BaseModel):
    """Nested model reached through an "omitprefix" env tag."""

    host: Annotated[str, Tags(help="The db host:port.")] = "localhost:5432"
    username: Annotated[str, Tags(env="UN", flag="un,u")] = "default_username"
    password: Annotated[str, Tags(env="PW", flag="pw,p", show="false")] = ""


class AppOptions(BaseModel):
    """Typical application options."""

    run_duration: timedelta = timedelta(seconds=1)
    duck_names: Annotated[list[str], Tags(sep=";")] = ["Freddy", "Eugene"]
    ignore_me: Annotated[int, Tags(env="-", flag="-")] = 0
    db: Annotated[Database | None, Tags(env="omitprefix", flag="db")] = None


class Sample(BaseModel):
    """One field of every supported kind."""

    name: str = ""
    enabled: bool = False
    small: Int8 = 0
    big: Uint64 = 0
    ratio: float = 0.0
    wait: timedelta = timedelta(0)
    started: datetime = datetime(1, 1, 1, tzinfo=timezone.utc)
    day: Annotated[datetime, Tags(fmt="DateOnly")] = datetime(2000, 1, 1)
    ids: Annotated[list[int], Tags(sep=";")] = []
    quoted: Annotated[list[str], Tags(env="QUOTED,string")] = []
    maybe: int | None = None
    waits: list[timedelta] = []


@pytest.fixture
def app_options():
    """Fresh AppOptions with its declared defaults."""
    return AppOptions()


@pytest.fixture
def populated_sample():
    """Sample holding non-zero values for every field."""
    return Sample(
        name="x y",
        enabled=True,
        small=-5,
        big=2**64 - 1,
        ratio=2.5,
        wait=timedelta(hours=1, minutes=30),
        started=datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc),
        day=datetime(2023, 12, 31),
        ids=[1, 2, 3],
        quoted=["a", "b"],
        maybe=7,
        waits=[timedelta(seconds=1), timedelta(milliseconds=5)],
    )

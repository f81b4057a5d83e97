"""Human-readable identifiers of the form PREFIX-YYYYMMDD-NNNN.

Each (prefix, day) pair owns a row in ``number_sequences``. Numbers come from
an atomic increment of that row inside the caller's transaction, so two
callers can never receive the same value and the identifier is only consumed
when the surrounding transaction commits.
"""
from datetime import date, datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import NumberSequence

APPLICATION_PREFIX = "APP"
NOC_PREFIX = "NOC"
GRIEVANCE_PREFIX = "GRV"

MAX_ATTEMPTS = 5


class NumberingError(Exception):
    """Raised when a sequence value cannot be reserved."""


def format_number(prefix: str, bucket: str, value: int) -> str:
    return f"{prefix}-{bucket}-{value:04d}"


def _bump(prefix: str, bucket: str) -> int | None:
    result = db.session.execute(
        update(NumberSequence)
        .where(NumberSequence.prefix == prefix, NumberSequence.bucket == bucket)
        .values(last_value=NumberSequence.last_value + 1)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        return None
    return db.session.execute(
        select(NumberSequence.last_value).where(
            NumberSequence.prefix == prefix,
            NumberSequence.bucket == bucket,
        )
    ).scalar_one()


def next_number(prefix: str, on: date | None = None) -> str:
    """Reserve the next identifier for ``prefix`` on the given (default: current UTC) day."""
    bucket = (on or datetime.utcnow().date()).strftime("%Y%m%d")
    for _ in range(MAX_ATTEMPTS):
        value = _bump(prefix, bucket)
        if value is not None:
            return format_number(prefix, bucket, value)
        try:
            # First number of the day; a concurrent insert loses on the primary key and retries the bump.
            with db.session.begin_nested():
                db.session.add(NumberSequence(prefix=prefix, bucket=bucket, last_value=1))
            return format_number(prefix, bucket, 1)
        except IntegrityError:
            continue
    raise NumberingError(f"Could not reserve a {prefix} number for {bucket}")

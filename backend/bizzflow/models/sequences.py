from __future__ import annotations

from ..extensions import db
from bizzflow.time_utils import to_utc_z


class Counter(db.Model):
    """
    Named atomic integer sequences.

    WHY: Prevent race conditions when minting human-readable document
    numbers (PO-000042). The row is incremented in place with a single
    UPDATE so two concurrent callers can never read the same value.
    """
    __tablename__ = "counters"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_counters_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    seq = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Counter name={self.name!r} seq={self.seq}>"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "seq": self.seq,
            "updated_at": to_utc_z(self.updated_at),
        }

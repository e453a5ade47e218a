from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class SequenceCounter(db.Model):
    """
    Monotonic counter behind human-readable ids (INV-000042, ORD-000007, RIN-000003).

    WHY: The counter row is the single serialization point for id allocation.
    It is read in a transaction's read phase and bumped in its write phase;
    the version column turns a concurrent bump into a StaleDataError, which
    the retry loop resolves.
    """
    __tablename__ = "sequence_counters"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_sequence_counters_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False)
    last_value = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "last_value": self.last_value,
            "updated_at": to_utc_z(self.updated_at),
        }

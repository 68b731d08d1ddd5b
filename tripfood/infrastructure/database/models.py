from typing import Any

from sqlmodel import JSON, Column, Field, SQLModel


class StoredRecord(SQLModel, table=True):  # type: ignore[call-arg]
    """One flat record of a collection. The payload keeps the record as-is."""

    __tablename__ = "records"  # type: ignore[assignment]

    collection: str = Field(primary_key=True, max_length=64)
    id: str = Field(primary_key=True, max_length=64)
    data: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False)
    )

    @classmethod
    def from_record(cls, collection: str, record: dict[str, Any]) -> "StoredRecord":
        return cls(collection=collection, id=record["id"], data=record)

    def to_record(self) -> dict[str, Any]:
        return dict(self.data)

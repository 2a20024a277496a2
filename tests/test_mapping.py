"""
Tests for Field-Mapping Metadata

Table names and columns come from the entity declarations only.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from gateway.persistence import (
    AllowedFi,
    AllowedUser,
    Entity,
    IdentityPolicy,
    ReceivedPayment,
    SentTransaction,
    UnknownEntityTypeError,
)
from gateway.persistence.entities import column
from gateway.persistence.mapping import MAPPINGS, build_mapping, resolve

from conftest import FIXED_TIME, make_allowed_fi


@dataclass
class Sample(Entity):
    label: str = column("label", default="")
    note: str = field(default="")
    id: Optional[int] = column("id", default=None)
    exists: bool = field(default=False, compare=False)


class TestResolve:
    """Test mapping resolution for known and unknown types."""

    def test_table_name_is_type_name(self):
        assert resolve(make_allowed_fi()).table == "AllowedFi"
        assert resolve(ReceivedPayment(operation_id="1", paging_token="t")).table == "ReceivedPayment"

    def test_columns_follow_declaration_order(self):
        mapping = resolve(make_allowed_fi())

        assert mapping.column_names == ["name", "domain", "public_key", "allowed_at", "id"]

    def test_exists_flag_is_not_persisted(self):
        for mapping in MAPPINGS.values():
            assert "exists" not in mapping.column_names
            assert "id" in mapping.column_names

    def test_registry_is_closed(self):
        assert len(MAPPINGS) == 5

    def test_unknown_type_rejected(self):
        with pytest.raises(UnknownEntityTypeError) as exc:
            resolve({"name": "Bank A"})

        assert exc.value.entity_type == "dict"
        assert isinstance(exc.value, TypeError)

    def test_subclass_of_variant_rejected(self):
        """Only the exact declared variants resolve."""

        @dataclass
        class SpecialFi(AllowedFi):
            pass

        with pytest.raises(UnknownEntityTypeError):
            resolve(SpecialFi(name="x", domain="y", public_key="z"))

    def test_identity_policies(self):
        assert resolve(make_allowed_fi()).identity is IdentityPolicy.AUTO_ASSIGNED
        assert resolve(SentTransaction(source="G", envelope_xdr="A")).identity is IdentityPolicy.AUTO_ASSIGNED
        assert resolve(ReceivedPayment(operation_id="1", paging_token="t")).identity is IdentityPolicy.CALLER_ASSIGNED


class TestBuildMapping:
    """Test mapping derivation from dataclass fields."""

    def test_unbound_fields_skipped(self):
        mapping = build_mapping(Sample)

        assert mapping.column_names == ["label", "id"]
        assert mapping.values(Sample(label="a", note="ignored")) == [("label", "a"), ("id", None)]

    def test_missing_id_column_rejected(self):
        @dataclass
        class NoId(Entity):
            label: str = column("label", default="")

        with pytest.raises(ValueError):
            build_mapping(NoId)


class TestValues:
    """Test conversion between entity values and storage values."""

    def test_datetimes_stored_as_iso_text(self):
        values = dict(resolve(make_allowed_fi()).values(make_allowed_fi()))

        assert values["allowed_at"] == FIXED_TIME.isoformat()
        assert values["name"] == "Bank A"

    def test_hydrate_parses_timestamps(self):
        user = AllowedUser(fi_name="", fi_domain="", fi_public_key="", user_id="")
        row = {
            "id": 7,
            "fi_name": "Bank A",
            "fi_domain": "banka.com",
            "fi_public_key": "GABC",
            "user_id": "u1",
            "allowed_at": FIXED_TIME.isoformat(),
        }

        resolve(user).hydrate(user, row)

        assert user.id == 7
        assert user.user_id == "u1"
        assert user.allowed_at == FIXED_TIME
        assert user.exists is False

    def test_hydrate_keeps_nulls(self):
        tx = SentTransaction(source="G", envelope_xdr="A")
        resolve(tx).hydrate(tx, {"succeeded_at": None, "ledger": None})

        assert tx.succeeded_at is None
        assert tx.ledger is None

    def test_naive_datetime_rejected(self):
        tx = SentTransaction(source="G", envelope_xdr="A", submitted_at=datetime(2016, 3, 14, 9, 26, 53))

        with pytest.raises(ValueError) as exc:
            resolve(tx).values(tx)

        assert "submitted_at" in str(exc.value)

    def test_offset_kept_in_storage(self):
        fi = make_allowed_fi()
        fi.allowed_at = FIXED_TIME.astimezone(timezone(timedelta(hours=-5)))

        values = dict(resolve(fi).values(fi))

        assert values["allowed_at"] == "2016-03-14T04:26:53.589000-05:00"

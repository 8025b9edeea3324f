import pytest
from bson import ObjectId

from errors import ClientError
from identifiers import ExtendedId, RawId, id_to_str, normalize_id_in_query, parse_identifier

HEX = "64b7f0c2a1b2c3d4e5f60718"


def test_parse_identifier_shapes():
    assert parse_identifier(HEX) == RawId(HEX)
    assert parse_identifier({"$oid": HEX}) == ExtendedId(HEX)
    assert parse_identifier({"$oid": 12}) is None
    assert parse_identifier(42) is None
    assert parse_identifier(None) is None


@pytest.mark.parametrize("value", [HEX, {"$oid": HEX}])
def test_top_level_id_becomes_object_id(value):
    normalized = normalize_id_in_query({"_id": value, "published": True})
    assert normalized == {"_id": ObjectId(HEX), "published": True}


def test_caller_query_is_not_mutated():
    query = {"_id": {"$oid": HEX}}
    normalize_id_in_query(query)
    assert query == {"_id": {"$oid": HEX}}


def test_nested_ids_are_left_alone():
    query = {"_id": {"$in": [HEX]}, "author": {"_id": HEX}}
    assert normalize_id_in_query(query) == query


def test_non_mapping_passes_through():
    assert normalize_id_in_query(None) is None
    assert normalize_id_in_query([HEX]) == [HEX]


def test_object_id_passes_through():
    oid = ObjectId(HEX)
    assert normalize_id_in_query({"_id": oid})["_id"] is oid


def test_malformed_hex_is_a_client_error():
    with pytest.raises(ClientError):
        normalize_id_in_query({"_id": "not-an-id"})


def test_id_to_str():
    assert id_to_str(ObjectId(HEX)) == HEX
    assert id_to_str({"$oid": HEX}) == HEX
    assert id_to_str(HEX) == HEX
    assert id_to_str(None) is None

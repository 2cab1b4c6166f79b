"""Tests for crm_api.filters.utils."""
import logging

from crm_api.filters import (
    FilterCondition,
    FilterConfig,
    FilterGroup,
    LogicalOperator,
    Operator,
    decode_filters,
    describe_filter,
    empty_filter_config,
    encode_filters,
    filter_hash,
    has_valid_conditions,
    validate_filter_config,
)


def sample_config() -> FilterConfig:
    return FilterConfig(
        groups=[
            FilterGroup("g1", [FilterCondition("c1", "name", Operator.CONTAINS, "acme")]),
            FilterGroup(
                "g2",
                [
                    FilterCondition("c2", "industry", Operator.EQUALS, "tech", LogicalOperator.AND),
                    FilterCondition("c3", "status", Operator.EQUALS, "ACTIVE", LogicalOperator.AND),
                ],
            ),
        ],
        name="Tech or Acme",
    )


class TestEmptyFilterConfig:
    def test_shape(self):
        config = empty_filter_config()
        assert len(config.groups) == 1
        cond = config.groups[0].conditions[0]
        assert cond.operator is Operator.EQUALS
        assert cond.field == ""
        assert not has_valid_conditions(config)


class TestValidateFilterConfig:
    def test_valid(self):
        assert validate_filter_config(sample_config()) == (True, [])

    def test_no_groups(self):
        assert validate_filter_config(FilterConfig()) == (False, ["At least one filter group is required"])

    def test_messages_are_one_based(self):
        config = FilterConfig(
            groups=[
                FilterGroup("g1", []),
                FilterGroup("g2", [
                    FilterCondition("c1", "name", Operator.EQUALS, "x"),
                    FilterCondition("c2", "", ""),
                ]),
            ]
        )
        ok, errors = validate_filter_config(config)
        assert not ok
        assert errors == [
            "Group 1 must have at least one condition",
            "Group 2, Condition 2: Field is required",
            "Group 2, Condition 2: Operator is required",
        ]


class TestDescribeFilter:
    def test_nothing_usable(self):
        assert describe_filter(empty_filter_config()) == "No filters applied"

    def test_groups_joined_with_or(self):
        labels = {"name": "Company Name", "industry": "Industry", "status": "Status"}
        assert describe_filter(sample_config(), labels) == (
            'Company Name contains "acme" OR (Industry equals "tech" AND Status equals "ACTIVE")'
        )

    def test_or_group_and_range_value(self):
        config = FilterConfig(groups=[FilterGroup("g", [
            FilterCondition("c1", "employeeCount", Operator.BETWEEN, [10, 50], LogicalOperator.OR),
            FilterCondition("c2", "industry", Operator.IS_EMPTY),
        ])])
        assert describe_filter(config) == "(employeeCount between 10 and 50 OR industry is empty)"


class TestEncodeFilters:
    def test_round_trip_keeps_usable_conditions(self):
        decoded = decode_filters(encode_filters(sample_config()))
        assert decoded.to_dict() == sample_config().to_dict()

    def test_url_safe(self):
        encoded = encode_filters(sample_config())
        assert "=" not in encoded and "+" not in encoded and "/" not in encoded

    def test_drops_unusable_conditions_and_empty_groups(self):
        config = sample_config()
        config.groups.append(FilterGroup("g3", [FilterCondition("blank")]))
        config.groups[0].conditions.append(FilterCondition("blank2", "name"))
        decoded = decode_filters(encode_filters(config))
        assert [g.id for g in decoded.groups] == ["g1", "g2"]
        assert len(decoded.groups[0].conditions) == 1

    def test_garbage_gives_empty_filter(self, caplog):
        with caplog.at_level(logging.WARNING, logger="filters"):
            decoded = decode_filters("%%%not-base64%%%")
        assert decoded == empty_filter_config()
        assert "Failed to decode filters" in caplog.text

    def test_non_object_payload_gives_empty_filter(self):
        # base64url of "[1]"
        assert decode_filters("WzFd") == empty_filter_config()

    def test_empty_input(self):
        assert decode_filters("") == empty_filter_config()
        assert decode_filters(None) == empty_filter_config()


class TestFilterHash:
    def test_stable_and_short(self):
        assert filter_hash(sample_config()) == filter_hash(sample_config())
        assert len(filter_hash(sample_config())) == 16

    def test_differs_on_value(self):
        other = sample_config()
        other.groups[0].conditions[0].value = "globex"
        assert filter_hash(other) != filter_hash(sample_config())

import re

import pytest

from catalog_search.schemas.search import FacetFilters, FilterClause, QuestionType, SearchIntent
from catalog_search.services.column_resolver import ColumnResolver
from catalog_search.services.query_executor import (
    QueryExecutor,
    clause_to_condition,
    facet_matches,
    fallback_terms,
    like_to_regex,
)

from tests.conftest import PR_1422, PS_870, PRIMER


def make_intent(**kwargs) -> SearchIntent:
    return SearchIntent.model_validate(kwargs)


def ilike(column, value):
    return {"column": column, "operator": "ilike", "value": value}


def regexes(condition):
    """All $regex patterns inside a (possibly nested) condition."""
    found = []
    if isinstance(condition, dict):
        for key, value in condition.items():
            if key == "$regex":
                found.append(value)
            else:
                found.extend(regexes(value))
    elif isinstance(condition, list):
        for item in condition:
            found.extend(regexes(item))
    return found


class TestLikeToRegex:
    def test_wildcards(self):
        pattern = like_to_regex("%870_B%")

        assert re.match(pattern, "PS 870 B2", re.IGNORECASE)
        assert re.match(pattern, "ps 870xb", re.IGNORECASE)
        assert not re.match(pattern, "PS 870", re.IGNORECASE)

    def test_regex_metacharacters_are_literal(self):
        pattern = like_to_regex("%P/S (510)+%")

        assert re.match(pattern, "P/S (510)+ Class A")
        assert not re.match(pattern, "P/S 510 Class A")

    def test_no_wildcards_is_whole_value_match(self):
        pattern = like_to_regex("PS 870")

        assert re.match(pattern, "ps 870", re.IGNORECASE)
        assert not re.match(pattern, "PS 870 Class B", re.IGNORECASE)


class TestClauseToCondition:
    def test_ilike_is_case_insensitive_regex(self):
        condition = clause_to_condition(FilterClause(column="sku", operator="ilike", value="%870%"))

        assert condition == {"sku": {"$regex": like_to_regex("%870%"), "$options": "is"}}

    @pytest.mark.parametrize(("operator", "mongo"), [("gt", "$gt"), ("lt", "$lt"), ("gte", "$gte"), ("lte", "$lte")])
    def test_ordering_operators_coerce_numbers(self, operator, mongo):
        condition = clause_to_condition(FilterClause(column="price", operator=operator, value="12.5"))

        assert condition == {"price": {mongo: 12.5}}

    def test_eq_numeric_string_matches_both_forms(self):
        condition = clause_to_condition(FilterClause(column="pack_size", operator="eq", value="5"))

        assert condition == {"pack_size": {"$in": ["5", 5]}}

    def test_eq_plain_text(self):
        condition = clause_to_condition(FilterClause(column="sku", operator="eq", value="0870A00276012PT"))

        assert condition == {"sku": "0870A00276012PT"}

    def test_neq(self):
        condition = clause_to_condition(FilterClause(column="family", operator="neq", value="Primers"))

        assert condition == {"family": {"$nin": ["Primers"]}}


class TestBuildIntentCondition:
    def test_any_combines_with_or(self, catalog, schema):
        intent = make_intent(filters=[ilike("sku", "%870%"), ilike("product_name", "%870%")], searchType="any")

        condition = QueryExecutor(catalog).build_intent_condition(intent, ColumnResolver(schema.columns))

        assert list(condition) == ["$or"]
        assert len(condition["$or"]) == 2

    def test_all_combines_with_and(self, catalog, schema):
        intent = make_intent(filters=[ilike("sku", "%870%"), ilike("family", "PS 870")], searchType="all")

        condition = QueryExecutor(catalog).build_intent_condition(intent, ColumnResolver(schema.columns))

        assert list(condition) == ["$and"]

    def test_unknown_columns_dropped(self, catalog, schema):
        intent = make_intent(filters=[ilike("colour", "%amber%"), ilike("sku", "%870%")])

        condition = QueryExecutor(catalog).build_intent_condition(intent, ColumnResolver(schema.columns))

        assert list(condition) == ["sku"]


class TestResolveLimit:
    def test_analytical_without_limit_uses_cap(self, catalog):
        intent = make_intent(questionType="analytical")

        assert QueryExecutor(catalog).resolve_limit(intent) == 100

    def test_analytical_limit_is_clamped(self, catalog):
        intent = make_intent(questionType="analytical", limit=500)

        assert QueryExecutor(catalog).resolve_limit(intent) == 100

    def test_list_limit_passes_through(self, catalog):
        assert QueryExecutor(catalog).resolve_limit(make_intent(limit=7)) == 7
        assert QueryExecutor(catalog).resolve_limit(make_intent()) is None


class TestExecute:
    async def test_primary_hit_skips_fallback(self, catalog, schema):
        catalog.find.return_value = [dict(PS_870)]
        intent = make_intent(filters=[ilike("sku", "%870%")], questionType="analytical")

        result = await QueryExecutor(catalog).execute(intent, None, ColumnResolver(schema.columns))

        assert result.records == [PS_870]
        assert result.primary_count == 1
        assert not result.used_fallback
        catalog.find.assert_awaited_once()
        assert catalog.find.call_args.kwargs["limit"] == 100

    async def test_fallback_runs_when_primary_is_empty(self, catalog, schema):
        catalog.find.side_effect = [[], [dict(PS_870)]]
        intent = make_intent(
            filters=[{"column": "sku", "operator": "eq", "value": "PS 870"}],
            searchKeywords=["PS 870", "870"],
        )

        result = await QueryExecutor(catalog).execute(intent, None, ColumnResolver(schema.columns))

        assert result.used_fallback
        assert result.primary_count == 0
        assert result.records == [PS_870]
        assert "PS 870" in result.search_terms

        fallback_call = catalog.find.await_args_list[1]
        assert fallback_call.kwargs["limit"] == 100
        patterns = regexes(fallback_call.args[0])
        assert like_to_regex("%PS 870%") in patterns
        assert like_to_regex("%PS870%") in patterns
        # identifier, name and full-text columns are all searched
        columns = {list(condition)[0] for condition in fallback_call.args[0]["$or"]}
        assert columns == {"sku", "product_name", "searchable_text"}

    async def test_no_filters_means_no_fallback(self, catalog, schema):
        catalog.find.return_value = []

        result = await QueryExecutor(catalog).execute(make_intent(), None, ColumnResolver(schema.columns))

        assert result.records == []
        assert not result.used_fallback
        catalog.find.assert_awaited_once()

    async def test_fallback_keeps_facet_constraints(self, catalog, schema):
        catalog.find.side_effect = [[], []]
        intent = make_intent(filters=[ilike("sku", "%1422%")])

        await QueryExecutor(catalog).execute(intent, FacetFilters(family="PR-1422"), ColumnResolver(schema.columns))

        fallback_query = catalog.find.await_args_list[1].args[0]
        assert {"family": "PR-1422"} in fallback_query["$and"]

    async def test_facet_without_column_filters_in_memory(self, catalog, schema):
        spec_record = dict(PR_1422, all_attributes={"specification": "AMS 3277"})
        catalog.find.return_value = [dict(PS_870), spec_record, dict(PRIMER)]
        facets = FacetFilters(specification="AMS 3277", family="PR-1422")

        result = await QueryExecutor(catalog).execute(make_intent(), facets, ColumnResolver(schema.columns))

        assert result.records == [spec_record]
        assert catalog.find.call_args.args[0] == {"family": "PR-1422"}

    async def test_short_terms_only_skip_fallback(self, catalog, schema):
        catalog.find.return_value = []
        intent = make_intent(filters=[ilike("sku", "%B%")])

        result = await QueryExecutor(catalog).execute(intent, None, ColumnResolver(schema.columns))

        assert not result.used_fallback
        catalog.find.assert_awaited_once()


def test_fallback_terms_from_clauses_and_keywords():
    intent = make_intent(
        filters=[ilike("sku", "%PS 870%"), {"column": "price", "operator": "gt", "value": "10"}],
        searchKeywords=["ps 870", "Class B"],
    )

    assert fallback_terms(intent) == ["PS 870", "Class B"]


def test_facet_matches_attribute_bag():
    assert facet_matches(dict(PS_870), "family", "PS 870")
    assert facet_matches(dict(PR_1422), "application", "Fuel tanks")
    assert not facet_matches(dict(PRIMER), "application", "Fuel tanks")

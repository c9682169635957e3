import json

from openai import APIConnectionError

from catalog_search.schemas.search import FacetFilters, QuestionType, SearchIntent
from catalog_search.services.query_interpreter import QueryInterpreter


def assert_default(intent: SearchIntent):
    assert intent.filters == []
    assert intent.search_type == "any"
    assert intent.question_type == QuestionType.LIST
    assert intent.limit is None


class TestInterpret:
    def test_parses_camel_case_intent(self, llm, schema):
        llm.complete.return_value = json.dumps(
            {
                "filters": [{"column": "sku", "operator": "ILIKE", "value": "%870%"}],
                "searchType": "any",
                "questionType": "analytical",
                "limit": 100,
                "orderBy": {"column": "sku", "ascending": False},
                "searchKeywords": ["PS 870", "870"],
            }
        )

        intent = QueryInterpreter(llm).interpret("Tell me about PS 870", schema)

        assert intent.question_type == QuestionType.ANALYTICAL
        assert intent.filters[0].operator == "ilike"
        assert intent.filters[0].value == "%870%"
        assert intent.limit == 100
        assert intent.order_by.column == "sku" and not intent.order_by.ascending
        assert intent.search_keywords == ["PS 870", "870"]

    def test_request_uses_json_mode(self, llm, schema):
        llm.complete.return_value = "{}"

        QueryInterpreter(llm).interpret("anything", schema)

        kwargs = llm.complete.call_args.kwargs
        assert kwargs["json_mode"] is True
        assert kwargs["user_prompt"] == "anything"

    def test_malformed_json_gives_default_intent(self, llm, schema):
        llm.complete.return_value = "filters: sku = 870"

        assert_default(QueryInterpreter(llm).interpret("PS 870", schema))

    def test_non_object_json_gives_default_intent(self, llm, schema):
        llm.complete.return_value = "[1, 2, 3]"

        assert_default(QueryInterpreter(llm).interpret("PS 870", schema))

    def test_provider_error_gives_default_intent(self, llm, schema):
        llm.complete.side_effect = APIConnectionError(request=None)

        assert_default(QueryInterpreter(llm).interpret("PS 870", schema))

    def test_invalid_clauses_dropped_individually(self, llm, schema):
        llm.complete.return_value = json.dumps(
            {
                "filters": [
                    {"column": "sku", "operator": "ilike", "value": "%870%"},
                    {"column": "sku", "operator": "between", "value": "1"},
                    {"operator": "eq", "value": "x"},
                    "sku = 1",
                ],
                "searchType": "ALL",
            }
        )

        intent = QueryInterpreter(llm).interpret("PS 870", schema)

        assert len(intent.filters) == 1
        assert intent.search_type == "all"

    def test_question_type_aliases(self, llm, schema):
        llm.complete.return_value = json.dumps({"questionType": "specific_ai", "attributeQuestion": "What color?"})

        intent = QueryInterpreter(llm).interpret("What is the color of PS 870", schema)

        assert intent.question_type == QuestionType.SPECIFIC
        assert intent.attribute_question == "What color?"

    def test_unknown_question_type_becomes_list(self, llm, schema):
        llm.complete.return_value = json.dumps({"questionType": "count", "limit": "abc"})

        intent = QueryInterpreter(llm).interpret("how many PS 870", schema)

        assert intent.question_type == QuestionType.LIST
        assert intent.limit is None


class TestSystemPrompt:
    def test_prompt_grounds_schema_preview_and_facets(self, llm, schema):
        prompt = QueryInterpreter(llm).build_system_prompt(schema, FacetFilters(family="PS 870"))

        assert "Columns: sku, product_name, description" in prompt
        assert '"sku": "PS 870 Class B"' in prompt
        assert '"family": "PS 870"' in prompt
        assert "ANALYTICAL" in prompt and "COMPARISON" in prompt

    def test_prompt_without_facets(self, llm, schema):
        prompt = QueryInterpreter(llm).build_system_prompt(schema, None)

        assert "USER APPLIED FILTERS:\nNone" in prompt
